"""
Health check endpoints.

Provides endpoints for monitoring and load balancer health checks.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.dependencies import get_context
from core.context import ServiceContext
from core.logging import get_logger


logger = get_logger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/")
async def root() -> dict:
    """Service banner with the available endpoints."""
    return {
        "message": "Welcome to the Product Catalog API",
        "version": "1.0.0",
        "endpoints": {
            "health": "GET /health",
            "products": {
                "list": "GET /api/products",
                "get": "GET /api/products/{id}",
                "create": "POST /api/products",
                "update": "PUT /api/products/{id}",
                "delete": "DELETE /api/products/{id}",
            },
        },
    }


@router.get("/health")
async def health_check(
    context: ServiceContext = Depends(get_context),
) -> dict:
    """
    Basic health check.

    Returns 200 if the service is running, along with which optional
    backends are active. Used by load balancers and orchestration systems.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "product-catalog",
        "s3_configured": context.images.remote_configured,
        "cache_connected": context.cache.is_connected,
    }
