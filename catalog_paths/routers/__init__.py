from fastapi import APIRouter

from . import catalog, health


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router)
    router.include_router(catalog.router)
    return router
