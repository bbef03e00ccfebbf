"""
FastAPI dependencies for dependency injection.

Provides the product service built during app lifespan to route handlers.
"""

from typing import Optional

from fastapi import Depends

from core.context import ServiceContext
from manager.product_service import ProductService


# Set during app lifespan
_product_service: Optional[ProductService] = None


def set_product_service(service: Optional[ProductService]) -> None:
    """Set the global product service instance."""
    global _product_service
    _product_service = service


async def get_product_service() -> ProductService:
    """
    Dependency that provides the product service.

    Usage:
        @router.get("/products")
        async def list_products(
            service: ProductService = Depends(get_product_service)
        ):
            ...
    """
    if _product_service is None:
        raise RuntimeError("Product service not initialized")
    return _product_service


async def get_context(
    service: ProductService = Depends(get_product_service),
) -> ServiceContext:
    """
    Dependency that provides the service context (settings and client handles).
    """
    return service.context
