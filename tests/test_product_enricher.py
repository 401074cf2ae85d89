import time
from decimal import Decimal

from catalog_paths.core.observability import correlation_context
from catalog_paths.services import InMemoryCategoryStore, PathResolver, ProductPathEnricher
from catalog_paths.services.category_store import CategoryRecord

RECORDS = [
    CategoryRecord(id=1, name="Electronics", slug="electronics"),
    CategoryRecord(id=2, name="Computers", slug="computers", parent_id=1),
    CategoryRecord(id=3, name="Laptops", slug="laptops", parent_id=2),
    CategoryRecord(id=4, name="Sale", slug="sale"),
    CategoryRecord(id=10, name="Broken A", slug="broken-a", parent_id=11),
    CategoryRecord(id=11, name="Broken B", slug="broken-b", parent_id=10),
    CategoryRecord(id=20, name="Slow", slug="slow", parent_id=1),
]


class SlowStore(InMemoryCategoryStore):
    def get_category_by_id(self, category_id):
        if category_id == 20:
            time.sleep(0.3)
        return super().get_category_by_id(category_id)


def _enricher(store_class=InMemoryCategoryStore):
    return ProductPathEnricher(PathResolver(store_class(RECORDS)))


def _product(product_id, *category_ids, **extra):
    data = {
        "id": product_id,
        "name": f"Product {product_id}",
        "slug": f"product-{product_id}",
        "price": Decimal("10.00"),
        "categories": [
            {"id": category_id, "name": f"Category {category_id}", "slug": f"category-{category_id}"}
            for category_id in category_ids
        ],
    }
    data.update(extra)
    return data


def test_enrich_attaches_path_per_category():
    enriched = _enricher().enrich(_product(1, 3, 4))

    assert enriched.category_ids == [3, 4]
    assert enriched.category_paths == ["electronics/computers/laptops", "sale"]
    assert enriched.categories[0].path.ids == [1, 2, 3]
    assert enriched.price == Decimal("10.00")
    dumped = enriched.model_dump(by_alias=True)
    assert dumped["categoryPaths"] == ["electronics/computers/laptops", "sale"]
    assert dumped["categoryIds"] == [3, 4]


def test_missing_or_malformed_categories_yield_empty_collections():
    enricher = _enricher()

    for product in (
        {"id": 1, "name": "No categories"},
        _product(2, categories=None),
        _product(3, categories="laptops"),
        _product(4, categories=[]),
    ):
        enriched = enricher.enrich(product)
        assert enriched.category_ids == []
        assert enriched.categories == []
        assert enriched.category_paths == []


def test_categories_without_id_are_skipped():
    product = _product(1, categories=[{"name": "Nameless"}, {"id": 4, "name": "Sale", "slug": "sale"}])

    enriched = _enricher().enrich(product)

    assert enriched.category_ids == [4]


def test_unknown_category_gets_empty_path():
    enriched = _enricher().enrich(_product(1, 99))

    assert enriched.category_ids == [99]
    assert enriched.category_paths == [""]


def test_batch_keeps_input_order_and_isolates_failures():
    batch = _enricher().enrich_many([_product(1, 3), _product(2, 10), _product(3, 4)])

    assert [outcome.index for outcome in batch.outcomes] == [0, 1, 2]
    assert [product.id for product in batch.products] == [1, 3]
    assert len(batch.failures) == 1
    failure = batch.failures[0]
    assert failure.product_id == 2
    assert failure.error_kind == "CycleDetected"
    assert failure.product is None


def test_batch_shares_memo_between_products():
    enricher = _enricher()

    enricher.enrich_many([_product(1, 3), _product(2, 2)])

    assert enricher.resolver.memo is not None
    assert enricher.resolver.memo.hits >= 2


def test_batch_binds_correlation_id():
    batch = _enricher().enrich_many([_product(1, 3)])
    assert batch.correlation_id.startswith("enrich-")

    with correlation_context("req-fixed"):
        batch = _enricher().enrich_many([_product(1, 3)])
    assert batch.correlation_id == "req-fixed"


def test_concurrent_batch_matches_sequential():
    products = [_product(i, 3 if i % 2 else 4) for i in range(1, 9)]

    sequential = _enricher().enrich_many(products)
    concurrent = _enricher().enrich_many(products, max_workers=4)

    assert [p.model_dump() for p in concurrent.products] == [p.model_dump() for p in sequential.products]


def test_slow_product_times_out_without_failing_batch():
    batch = _enricher(SlowStore).enrich_many([_product(1, 3), _product(2, 20)], timeout=0.05)

    assert [product.id for product in batch.products] == [1]
    assert batch.failures[0].product_id == 2
    assert batch.failures[0].error_kind == "ResolutionTimeout"


def test_slow_product_times_out_in_worker_pool():
    batch = _enricher(SlowStore).enrich_many(
        [_product(1, 3), _product(2, 20), _product(3, 4)], timeout=0.05, max_workers=2
    )

    assert [outcome.index for outcome in batch.outcomes] == [0, 1, 2]
    assert [product.id for product in batch.products] == [1, 3]
    assert batch.failures[0].error_kind == "ResolutionTimeout"


def test_empty_batch():
    batch = _enricher().enrich_many([])

    assert batch.outcomes == []
    assert batch.products == []


def test_categories_with_non_integer_ids_are_skipped():
    product = _product(
        1,
        categories=[
            {"id": "3", "name": "Laptops", "slug": "laptops"},
            {"id": "x", "name": "Bogus", "slug": "bogus"},
            {"id": True, "name": "Flag", "slug": "flag"},
            {"id": 4, "name": "Sale", "slug": "sale"},
        ],
    )

    enriched = _enricher().enrich(product)

    assert enriched.category_ids == [4]
    assert enriched.category_paths == ["sale"]
