"""
API route modules.
"""

from api.routes.products import router as products_router
from api.routes.health import router as health_router

__all__ = ["products_router", "health_router"]
