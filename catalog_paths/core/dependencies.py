from fastapi import Depends
from sqlalchemy.orm import Session

from catalog_paths.core.db import get_db_session
from catalog_paths.services import (
    CategoryPathRouter,
    CategoryService,
    PathResolver,
    ProductService,
    RecordMemo,
    SqlCategoryStore,
)


def get_db() -> Session:
    yield from get_db_session()


def get_category_service(db: Session = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    return ProductService(db)


def get_path_router(
    db: Session = Depends(get_db),
    products: ProductService = Depends(get_product_service),
) -> CategoryPathRouter:
    store = SqlCategoryStore(db)
    resolver = PathResolver(store, max_depth=products.settings.CATEGORY_PATH_MAX_DEPTH, memo=RecordMemo())
    return CategoryPathRouter(store, products, resolver)
