"""
FastAPI application entry point.

Sets up the application with:
- Lifespan management (startup/shutdown)
- Route registration
- Middleware configuration
- Error handling
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.dependencies import set_product_service
from api.routes import health_router, products_router
from core.config import settings
from core.context import build_context
from core.errors import (
    InvalidInput,
    InvalidUpload,
    NotFound,
    ProductServiceError,
)
from core.logging import configure_logging, get_logger
from manager.product_service import ProductService


logger = get_logger(__name__)

ERROR_STATUS_CODES: dict[type[ProductServiceError], int] = {
    InvalidInput: 400,
    InvalidUpload: 400,
    NotFound: 404,
}


def status_code_for(exc: ProductServiceError) -> int:
    """Map a domain error to an HTTP status; unknown kinds are internal errors."""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup: build the service context (database required, Redis and S3
    optional) and publish the product service.
    Shutdown: close cache and database connections.
    """
    configure_logging()

    logger.info("Starting product catalog service...")

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    context = build_context(settings)
    await context.start()
    set_product_service(ProductService(context))

    logger.info(
        "Product catalog service started",
        host=settings.server_host,
        port=settings.server_port,
        s3_configured=context.images.remote_configured,
        cache_connected=context.cache.is_connected,
    )

    yield

    # =========================================
    # Shutdown
    # =========================================
    logger.info("Shutting down product catalog service...")

    set_product_service(None)
    await context.close()

    logger.info("Product catalog service stopped")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title="Product Catalog API",
        description=(
            "CRUD API for products with a Redis-cached listing and "
            "image storage on S3 or local disk."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    app.include_router(health_router)
    app.include_router(products_router)

    # Locally stored images
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    @app.exception_handler(ProductServiceError)
    async def product_error_handler(request: Request, exc: ProductServiceError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(
                "Product operation failed",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                exc_info=True,
            )
            message = str(exc) if settings.debug else "An error occurred"
            return JSONResponse(
                status_code=status_code,
                content={"success": False, "error": "Internal server error", "message": message},
            )

        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": str(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error = "Route not found" if exc.status_code == 404 else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": error},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.server:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
