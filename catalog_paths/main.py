import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_paths.core.cache import cache_manager
from catalog_paths.core.config import get_settings
from catalog_paths.core.logging import configure_logging
from catalog_paths.core.middleware import RequestContextMiddleware
from catalog_paths.routers import get_api_router
from catalog_paths.services import register_invalidation_hooks


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()
    register_invalidation_hooks()

    logger = logging.getLogger("catalog_paths.validation")

    app = FastAPI(title=settings.PROJECT_NAME)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.CORS_ORIGINS] or ["*"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(
            "Validation error on %s %s detail=%s",
            request.method,
            request.url.path,
            exc.errors(),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    app.include_router(get_api_router(), prefix=settings.API_V1_PREFIX)

    @app.on_event("startup")
    def startup_event():
        cache_manager.init_backend()

    return app


app = create_app()
