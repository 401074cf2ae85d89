from .category_service import CategoryService, register_invalidation_hooks
from .category_store import (
    CategoryFilter,
    CategoryRecord,
    CategoryStore,
    InMemoryCategoryStore,
    SqlCategoryStore,
)
from .category_tree import CategoryNode, CategoryTree
from .path_resolver import PathResolver, RecordMemo
from .path_router import CategoryPathRouter, normalize_path, paths_overlap, product_matches_path
from .product_enricher import ProductPathEnricher
from .product_service import ProductService

__all__ = [
    "CategoryFilter",
    "CategoryNode",
    "CategoryPathRouter",
    "CategoryRecord",
    "CategoryService",
    "CategoryStore",
    "CategoryTree",
    "InMemoryCategoryStore",
    "PathResolver",
    "ProductPathEnricher",
    "ProductService",
    "RecordMemo",
    "SqlCategoryStore",
    "normalize_path",
    "paths_overlap",
    "product_matches_path",
    "register_invalidation_hooks",
]
