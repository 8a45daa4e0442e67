from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from api.config.logging import setup_logging
from api.config.settings import settings
from api.v1.communications import registry_init  # noqa: F401
from api.v1.communications.routes import router as communications_router
from api.v1.core.exceptions import (
    ParishDeliveryException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    parish_delivery_exception_handler,
    validation_exception_handler,
)
from api.v1.core.registries import provider_registry
from api.v1.healthz import router as health_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Delivery jobs for parish communications",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(ParishDeliveryException, parish_delivery_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(communications_router, prefix="/v1")

    # Providers are fixed once the service is deployed
    if settings.environment != "development":
        provider_registry.freeze()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
