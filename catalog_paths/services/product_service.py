from sqlalchemy.orm import Session, selectinload

from catalog_paths.core.config import get_settings
from catalog_paths.models import Category, Product
from catalog_paths.schemas import BatchEnrichment, EnrichedProduct

from . import exceptions
from .category_store import SqlCategoryStore
from .category_tree import CategoryTree
from .path_resolver import PathResolver, RecordMemo
from .path_router import normalize_path, split_path
from .product_enricher import ProductPathEnricher


class ProductService:
    def __init__(self, db: Session):
        self.db = db
        self.store = SqlCategoryStore(db)
        self.settings = get_settings()

    def get_product(self, product_id: int) -> EnrichedProduct:
        product = self._query().filter(Product.id == product_id).first()
        if not product:
            raise exceptions.NotFoundError("Product not found")
        return self._enricher().enrich(product)

    def get_product_by_slug(self, slug: str) -> EnrichedProduct | None:
        product = self._query().filter(Product.slug == slug).first()
        if not product:
            return None
        return self._enricher().enrich(product)

    def list_products(self, category_ids: list[int] | None = None) -> BatchEnrichment:
        query = self._query()
        if category_ids is not None:
            if not category_ids:
                return BatchEnrichment()
            query = query.filter(Product.categories.any(Category.id.in_(category_ids)))
        products = query.order_by(Product.name, Product.id).all()
        return self._enrich_batch(products)

    def list_by_category_path(self, path: str) -> BatchEnrichment:
        """Products attached to the category at ``path`` or to any descendant.

        The path must be the category's exact root-first slug path.
        """

        segments = split_path(path)
        if not segments:
            return BatchEnrichment()
        record = self.store.get_category_by_slug(segments[-1])
        if record is None:
            return BatchEnrichment()
        resolved = self._resolver().resolve(record.id)
        if resolved.full_path != normalize_path(path):
            return BatchEnrichment()

        tree = CategoryTree.build(self.store.list_categories())
        return self.list_products(category_ids=sorted(tree.descendant_ids(record.id)))

    def _query(self):
        return self.db.query(Product).options(selectinload(Product.categories))

    def _resolver(self) -> PathResolver:
        # Fresh memo per call: records must not outlive the request.
        return PathResolver(
            self.store,
            max_depth=self.settings.CATEGORY_PATH_MAX_DEPTH,
            memo=RecordMemo(),
        )

    def _enricher(self) -> ProductPathEnricher:
        return ProductPathEnricher(self._resolver())

    def _enrich_batch(self, products: list[Product]) -> BatchEnrichment:
        return self._enricher().enrich_many(
            products,
            timeout=self.settings.ENRICHMENT_TIMEOUT_SECONDS,
            max_workers=self.settings.ENRICHMENT_MAX_WORKERS,
        )
