"""
Product management endpoints.

Provides CRUD operations for products:
- GET /api/products - List products (cached)
- GET /api/products/{product_id} - Get a product
- POST /api/products - Create a product (multipart, optional image)
- PUT /api/products/{product_id} - Update a product (multipart, optional image)
- DELETE /api/products/{product_id} - Delete a product

Domain errors propagate to the exception handlers registered in
api.server, which map them to status codes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from api.dependencies import get_product_service
from api.schemas.product import (
    MessageResponse,
    ProductListResponse,
    ProductOut,
    ProductResponse,
)
from core.logging import get_logger
from core.uploads import IncomingFile
from manager.product_service import ProductService


logger = get_logger(__name__)
router = APIRouter(prefix="/api/products", tags=["Products"])


def _incoming(image: Optional[UploadFile]) -> Optional[IncomingFile]:
    # Browsers submit an empty part when no file is chosen
    if image is None or not image.filename:
        return None
    return IncomingFile(
        filename=image.filename,
        content_type=image.content_type,
        stream=image,
    )


@router.get("", response_model=ProductListResponse)
async def list_products(
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    """
    List all products, newest first.

    Served from the cache when a fresh listing is available;
    `source` tells which.
    """
    listing = await service.list()
    return ProductListResponse(
        data=[ProductOut.from_product(product) for product in listing.items],
        source=listing.source.value,
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    """Get a single product. Always read from the database."""
    product = await service.get(product_id)
    return ProductResponse(data=ProductOut.from_product(product))


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    """
    Create a product.

    The image is optional. If it cannot be stored the product is still
    created, without an image.
    """
    logger.info(
        "Creating product",
        name=name,
        has_image=image is not None,
    )

    product = await service.create(name, description, _incoming(image))
    return ProductResponse(
        data=ProductOut.from_product(product),
        message="Product created successfully",
    )


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    """
    Update a product.

    Omitted or empty fields keep their current values. A new image
    replaces the existing one.
    """
    logger.info(
        "Updating product",
        product_id=product_id,
        has_image=image is not None,
    )

    product = await service.update(product_id, name, description, _incoming(image))
    return ProductResponse(
        data=ProductOut.from_product(product),
        message="Product updated successfully",
    )


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> MessageResponse:
    """Delete a product and, best-effort, its image."""
    logger.info(
        "Deleting product",
        product_id=product_id,
    )

    await service.delete(product_id)
    return MessageResponse(message="Product deleted successfully")
