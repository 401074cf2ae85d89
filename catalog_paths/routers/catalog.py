from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from catalog_paths.core.dependencies import (
    get_category_service,
    get_path_router,
    get_product_service,
)
from catalog_paths.schemas import (
    CategoryNodeRead,
    CategoryPath,
    CategoryRead,
    CategoryWithPath,
    EnrichedProduct,
    PathMatch,
)
from catalog_paths.services import CategoryPathRouter, CategoryService, ProductService
from catalog_paths.services import exceptions as service_exceptions

router = APIRouter(prefix="/catalog", tags=["catalog"])


def _path_error(exc: service_exceptions.PathResolutionError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


@router.get("/categories", response_model=list[CategoryRead])
def list_categories(
    search: Optional[str] = Query(default=None),
    service: CategoryService = Depends(get_category_service),
):
    return [CategoryRead.model_validate(record) for record in service.list_categories(search=search)]


@router.get("/categories/tree", response_model=list[CategoryNodeRead])
def category_tree(service: CategoryService = Depends(get_category_service)):
    try:
        return service.get_tree()
    except service_exceptions.PathResolutionError as exc:
        raise _path_error(exc) from exc


@router.get("/categories/by-slug/{slug}", response_model=CategoryWithPath)
def get_category_by_slug(slug: str, service: CategoryService = Depends(get_category_service)):
    try:
        category = service.get_category_with_path(slug)
    except service_exceptions.PathResolutionError as exc:
        raise _path_error(exc) from exc
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get("/categories/{category_id}/path", response_model=CategoryPath)
def get_category_path(category_id: int, service: CategoryService = Depends(get_category_service)):
    try:
        path = service.get_category_path(category_id)
    except service_exceptions.PathResolutionError as exc:
        raise _path_error(exc) from exc
    if path.is_empty:
        raise HTTPException(status_code=404, detail="Category not found")
    return path


@router.get("/products/{product_id}", response_model=EnrichedProduct)
def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    try:
        return service.get_product(product_id)
    except service_exceptions.NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except service_exceptions.PathResolutionError as exc:
        raise _path_error(exc) from exc


@router.get("/paths/{path:path}/products", response_model=list[EnrichedProduct])
def list_products_by_path(path: str, service: ProductService = Depends(get_product_service)):
    try:
        batch = service.list_by_category_path(path)
    except service_exceptions.PathResolutionError as exc:
        raise _path_error(exc) from exc
    return batch.products


@router.get("/resolve/{path:path}", response_model=PathMatch)
def resolve_path(path: str, path_router: CategoryPathRouter = Depends(get_path_router)):
    try:
        match = path_router.match(path)
    except service_exceptions.PathResolutionError as exc:
        raise _path_error(exc) from exc
    if not match.matched:
        raise HTTPException(status_code=404, detail="Path not found")
    return match
