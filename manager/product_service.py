"""
Product service - orchestrates cache, image storage and persistence.

Keeps the three subsystems consistent under partial failure without a
distributed transaction:
- reads go through the listing cache (cache-aside), single gets never do
- cache and storage failures are absorbed, persistence failures propagate
- writes invalidate the listing cache before they return
- an image is replaced by storing the new blob, updating the row, and
  only then removing the old blob
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.cache import LISTING_KEY
from core.context import ServiceContext
from core.errors import InvalidInput, NotFound, PersistenceFailure, StorageFailure
from core.logging import get_logger
from core.repository import Product
from core.results import Outcome
from core.storage import StorageResult
from core.uploads import IncomingFile, stage_upload


logger = get_logger(__name__)


class ListingSource(str, Enum):
    """Where a listing was served from."""
    CACHE = "cache"
    DATABASE = "database"


@dataclass
class ProductListing:
    items: list[Product]
    source: ListingSource


class ProductService:
    """
    CRUD operations over products.

    Concurrent operations on the same id are not serialized here; the
    last committed row write wins.

    Usage:
        context = build_context(settings)
        await context.start()
        service = ProductService(context)

        product = await service.create("Widget", "A widget")
        listing = await service.list()
    """

    def __init__(self, context: ServiceContext):
        self._context = context
        self._repository = context.repository
        self._cache = context.cache
        self._images = context.images

    @property
    def context(self) -> ServiceContext:
        return self._context

    async def list(self) -> ProductListing:
        """Return every product, newest first, from cache when possible."""
        cached = await self._cache.get(LISTING_KEY)
        if cached.hit:
            try:
                items = [Product.from_dict(item) for item in cached.value]
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Discarding undecodable cached listing", error=str(e))
            else:
                logger.debug("Cache hit - returning cached products", count=len(items))
                return ProductListing(items=items, source=ListingSource.CACHE)

        logger.debug("Cache miss - querying database")
        products = await self._repository.select_all_ordered_by_created_desc()

        await self._cache.set(
            LISTING_KEY,
            [product.to_dict() for product in products],
            ttl=self._context.settings.cache_ttl_seconds,
        )
        return ProductListing(items=products, source=ListingSource.DATABASE)

    async def get(self, product_id: int) -> Product:
        """Fetch a single product directly from the store."""
        product = await self._repository.select_by_id(product_id)
        if product is None:
            raise NotFound(product_id)
        return product

    async def create(
        self,
        name: Optional[str],
        description: Optional[str] = None,
        file: Optional[IncomingFile] = None,
    ) -> Product:
        """
        Create a product, storing its image if one is supplied.

        A storage failure never aborts the create: the product is then
        saved without an image.
        """
        if not name or not name.strip():
            raise InvalidInput("Product name is required")

        image_reference = None
        if file is not None:
            stored = await self._store_image(file)
            image_reference = stored.reference

        try:
            product = await self._repository.insert(name, description, image_reference)
        except PersistenceFailure:
            if image_reference:
                await self._discard_orphan(image_reference, reason="create failed")
            raise

        await self._invalidate_listing()

        logger.info(
            "Product created",
            product_id=product.id,
            image_reference=product.image_reference,
        )
        return product

    async def update(
        self,
        product_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        file: Optional[IncomingFile] = None,
    ) -> Product:
        """
        Update a product.

        Empty or missing name/description keep their previous values.
        A new image replaces the old one only once the row points at it.
        """
        existing = await self.get(product_id)
        previous_reference = existing.image_reference

        new_reference = None
        if file is not None:
            stored = await self._store_image(file)
            new_reference = stored.reference

        try:
            updated = await self._repository.update_by_id(
                product_id,
                name if name and name.strip() else existing.name,
                description or existing.description,
                new_reference or previous_reference,
            )
        except PersistenceFailure:
            if new_reference:
                await self._discard_orphan(new_reference, reason="update failed")
            raise

        if updated is None:
            # Deleted concurrently between the read and the write
            if new_reference:
                await self._discard_orphan(new_reference, reason="product vanished")
            raise NotFound(product_id)

        if new_reference and previous_reference and previous_reference != new_reference:
            await self._discard_orphan(previous_reference, reason="image replaced")

        await self._invalidate_listing()

        logger.info(
            "Product updated",
            product_id=product_id,
            image_replaced=new_reference is not None,
        )
        return updated

    async def delete(self, product_id: int) -> None:
        """Delete the row, then best-effort remove its image."""
        existing = await self.get(product_id)

        deleted = await self._repository.delete_by_id(product_id)
        if not deleted:
            raise NotFound(product_id)

        if existing.image_reference:
            await self._discard_orphan(existing.image_reference, reason="product deleted")

        await self._invalidate_listing()

        logger.info("Product deleted", product_id=product_id)

    async def _store_image(self, file: IncomingFile) -> StorageResult:
        try:
            async with stage_upload(file, self._context.settings) as staged:
                data = await staged.read_bytes()
                result = await self._images.store(data, staged.original_name)
        except OSError as e:
            logger.error("Failed to stage upload", name=file.filename, error=str(e))
            failure = StorageFailure(f"Failed to stage upload {file.filename}: {e}")
            failure.__cause__ = e
            result = StorageResult(Outcome.FAILED_ABSORBED, backend="staging", error=failure)

        if not result.applied:
            logger.warning(
                "Image not stored, continuing without image",
                name=file.filename,
                outcome=result.outcome.value,
            )
        return result

    async def _discard_orphan(self, reference: str, reason: str) -> StorageResult:
        result = await self._images.remove(reference)
        if not result.applied:
            logger.warning(
                "Orphaned image left in storage",
                reference=reference,
                reason=reason,
                outcome=result.outcome.value,
            )
        return result

    async def _invalidate_listing(self) -> None:
        outcome = await self._cache.delete(LISTING_KEY)
        logger.debug("Listing cache invalidated", outcome=outcome.value)
