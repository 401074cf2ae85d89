import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_paths.core.cache import cache_manager
from catalog_paths.core.dependencies import get_db
from catalog_paths.schemas import HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        database = "unavailable"
    backend = cache_manager.get_backend()
    return HealthStatus(
        status="ok" if database == "ok" else "degraded",
        database=database,
        cache_backend=type(backend).__name__,
    )
