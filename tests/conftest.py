"""
Pytest configuration and fixtures.
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from core.cache import ListingCache  # noqa: E402
from core.config import Settings  # noqa: E402
from core.context import build_context  # noqa: E402
from core.storage import ImageStore, create_local_storage  # noqa: E402
from manager.product_service import ProductService  # noqa: E402
from tests.fakes import FakeRedis, InMemoryProductRepository, RecordingBlobStorage  # noqa: E402


@pytest.fixture
def make_settings(tmp_path):
    """Build isolated settings: no Redis host, no S3, uploads under tmp_path."""
    def _make(**overrides) -> Settings:
        values = {
            "_env_file": None,
            "redis_host": None,
            "aws_access_key_id": None,
            "aws_secret_access_key": None,
            "aws_region": None,
            "s3_bucket_name": None,
            "upload_dir": str(tmp_path / "uploads"),
            "upload_staging_dir": str(tmp_path / "staging"),
            "cache_ttl_seconds": 60,
            "local_fallback_on_remote_failure": False,
        }
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def staging_dir(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def events() -> list:
    """Shared, ordered log of repository and blob operations."""
    return []


@pytest.fixture
def repository(events) -> InMemoryProductRepository:
    return InMemoryProductRepository(events)


@pytest.fixture
def remote(events) -> RecordingBlobStorage:
    return RecordingBlobStorage(events)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def make_service(repository, remote, fake_redis):
    """Build a ProductService wired to the in-memory doubles."""
    async def _make(settings: Settings, redis_client=None) -> ProductService:
        cache = ListingCache(settings, client=redis_client or fake_redis)
        await cache.connect()
        images = ImageStore(
            settings,
            local=create_local_storage(settings),
            remote_factory=lambda _: remote,
        )
        context = build_context(
            settings,
            repository=repository,
            cache=cache,
            images=images,
        )
        return ProductService(context)
    return _make
