"""
Service context: the process-wide client handles.

Built once at startup and passed explicitly into ProductService, so the
cache, image storage and repository can be replaced with test doubles.
"""

from dataclasses import dataclass
from typing import Optional

from core.cache import ListingCache
from core.config import Settings
from core.logging import get_logger
from core.repository import BaseProductRepository, PostgresProductRepository
from core.storage import ImageStore, create_local_storage


logger = get_logger(__name__)


@dataclass
class ServiceContext:
    settings: Settings
    repository: BaseProductRepository
    cache: ListingCache
    images: ImageStore

    async def start(self) -> None:
        """
        Initialize the repository and try to connect the cache.

        Repository errors abort startup; the cache is optional.
        """
        if not self.settings.database_url:
            raise RuntimeError("Missing required configuration: DATABASE_URL")

        await self.repository.setup()
        outcome = await self.cache.connect()

        logger.info(
            "Service context started",
            cache=outcome.value,
            image_storage="s3" if self.images.remote_configured else "local",
        )

    async def close(self) -> None:
        await self.cache.close()
        await self.repository.close()


def build_context(
    settings: Settings,
    repository: Optional[BaseProductRepository] = None,
    cache: Optional[ListingCache] = None,
    images: Optional[ImageStore] = None,
) -> ServiceContext:
    """Build a context from settings, keeping any handles passed in."""
    if repository is None:
        repository = PostgresProductRepository(
            async_connection_string=settings.database_url,
            echo=settings.debug,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

    return ServiceContext(
        settings=settings,
        repository=repository,
        cache=cache or ListingCache(settings),
        images=images or ImageStore(settings, local=create_local_storage(settings)),
    )
