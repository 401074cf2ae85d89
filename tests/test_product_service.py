import threading
import time
from decimal import Decimal

import pytest

from catalog_paths.services import PathResolver, ProductPathEnricher, ProductService, SqlCategoryStore
from catalog_paths.services.exceptions import NotFoundError


@pytest.fixture()
def catalog(make_category, make_product):
    electronics = make_category("Electronics", "electronics")
    computers = make_category("Computers", "computers", parent=electronics)
    laptops = make_category("Laptops", "laptops", parent=computers)
    sale = make_category("Sale", "sale")
    ultrabook = make_product("Ultrabook", "ultrabook", categories=[laptops, sale], price="999.00")
    cable = make_product("Cable", "cable", categories=[electronics])
    poster = make_product("Poster", "poster")
    return {
        "electronics": electronics,
        "computers": computers,
        "laptops": laptops,
        "sale": sale,
        "ultrabook": ultrabook,
        "cable": cable,
        "poster": poster,
    }


def test_get_product_is_enriched(db_session, catalog):
    product = ProductService(db_session).get_product(catalog["ultrabook"].id)

    assert product.slug == "ultrabook"
    assert product.price == Decimal("999.00")
    assert product.category_ids == [catalog["laptops"].id, catalog["sale"].id]
    assert product.category_paths == ["electronics/computers/laptops", "sale"]


def test_product_without_categories(db_session, catalog):
    product = ProductService(db_session).get_product_by_slug("poster")

    assert product.categories == []
    assert product.category_paths == []


def test_missing_product(db_session, catalog):
    service = ProductService(db_session)

    with pytest.raises(NotFoundError):
        service.get_product(987654)
    assert service.get_product_by_slug("nothing") is None


def test_list_products_filters_by_category(db_session, catalog):
    service = ProductService(db_session)

    assert [p.slug for p in service.list_products().products] == ["cable", "poster", "ultrabook"]
    assert [p.slug for p in service.list_products([catalog["sale"].id]).products] == ["ultrabook"]
    assert service.list_products([]).outcomes == []


def test_products_under_path_include_descendants(db_session, catalog):
    service = ProductService(db_session)

    assert [p.slug for p in service.list_by_category_path("electronics").products] == ["cable", "ultrabook"]
    assert [p.slug for p in service.list_by_category_path("/electronics/computers/").products] == [
        "ultrabook"
    ]


def test_products_under_non_canonical_path(db_session, catalog):
    service = ProductService(db_session)

    assert service.list_by_category_path("computers").products == []
    assert service.list_by_category_path("").products == []
    assert service.list_by_category_path("garden").products == []


class SlowSqlStore(SqlCategoryStore):
    def __init__(self, db, slow_id):
        super().__init__(db)
        self.slow_id = slow_id
        self.in_flight = 0
        self._counter = threading.Lock()

    def get_category_by_id(self, category_id):
        with self._counter:
            self.in_flight += 1
        try:
            if category_id == self.slow_id:
                time.sleep(0.2)
            return super().get_category_by_id(category_id)
        finally:
            with self._counter:
                self.in_flight -= 1


def test_pool_timeout_leaves_no_worker_on_the_session(db_session, catalog, make_category, make_product):
    slow = make_category("Slow", "slow", parent=catalog["electronics"])
    lamp = make_product("Lamp", "lamp", categories=[slow])
    store = SlowSqlStore(db_session, slow.id)
    enricher = ProductPathEnricher(PathResolver(store))

    batch = enricher.enrich_many([catalog["cable"], lamp, catalog["ultrabook"]], timeout=0.05, max_workers=2)

    assert store.in_flight == 0
    assert [product.slug for product in batch.products] == ["cable", "ultrabook"]
    assert batch.failures[0].product_id == lamp.id
    assert batch.failures[0].error_kind == "ResolutionTimeout"
