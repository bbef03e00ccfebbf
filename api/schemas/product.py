"""
Product-related response schemas.

These Pydantic models define the API contract and provide
automatic validation and documentation. Create/update requests are
multipart forms and are declared directly on the routes.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from core.repository import Product


class ProductOut(BaseModel):
    """A product as returned by the API."""

    id: int = Field(
        ...,
        description="Store-assigned product identifier",
    )
    name: str = Field(
        ...,
        description="Product name",
        examples=["Widget"],
    )
    description: Optional[str] = Field(
        default=None,
        description="Free-text description",
    )
    image_url: Optional[str] = Field(
        default=None,
        description="Image location: '/uploads/...' for local storage or a public S3 URL",
        examples=["/uploads/1718000000000-123456789.png"],
    )
    created_at: datetime = Field(
        ...,
        description="Creation timestamp",
    )
    updated_at: datetime = Field(
        ...,
        description="Last update timestamp",
    )

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            image_url=product.image_reference,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductResponse(BaseModel):
    """Envelope for a single product."""

    success: bool = True
    data: ProductOut
    message: Optional[str] = None


class ProductListResponse(BaseModel):
    """Envelope for the product listing."""

    success: bool = True
    data: list[ProductOut] = Field(default_factory=list)
    source: Literal["cache", "database"] = Field(
        ...,
        description="Whether the listing was served from the cache or the database",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "data": [
                        {
                            "id": 1,
                            "name": "Widget",
                            "description": "A widget",
                            "image_url": "/uploads/1718000000000-123456789.png",
                            "created_at": "2024-06-10T08:00:00Z",
                            "updated_at": "2024-06-10T08:00:00Z",
                        }
                    ],
                    "source": "database",
                }
            ]
        }
    }


class MessageResponse(BaseModel):
    """Envelope for operations without a payload."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Envelope for failed requests."""

    success: bool = False
    error: str
    message: Optional[str] = None
