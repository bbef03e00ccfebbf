"""
Pydantic schemas for API request/response validation.
"""

from api.schemas.product import (
    ErrorResponse,
    MessageResponse,
    ProductListResponse,
    ProductOut,
    ProductResponse,
)

__all__ = [
    "ErrorResponse",
    "MessageResponse",
    "ProductListResponse",
    "ProductOut",
    "ProductResponse",
]
