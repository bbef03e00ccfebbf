"""
Error taxonomy for the product service.

Validation and lookup errors are raised immediately to the caller.
Storage and cache failures never leave the core: they are wrapped in
their exception type and attached to an absorbed result instead.
Persistence failures always propagate.
"""


class ProductServiceError(Exception):
    """Base exception for product operations."""
    pass


class InvalidInput(ProductServiceError):
    """A required field is missing or empty."""
    pass


class InvalidUpload(ProductServiceError):
    """An uploaded file is not an accepted image or is too large."""
    pass


class NotFound(ProductServiceError):
    """The targeted product id does not exist."""

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class PersistenceFailure(ProductServiceError):
    """The relational store rejected or failed an operation."""
    pass


class StorageFailure(ProductServiceError):
    """A blob store or remove operation failed."""
    pass


class CacheFailure(ProductServiceError):
    """The cache backend failed an operation."""
    pass
