"""
Abstract base class for the product store.

This module defines the narrow query contract the product service needs
from the relational database, so the concrete backend can be swapped for
an in-memory double in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class Product:
    """
    A persisted product row.

    image_reference is an opaque locator produced by exactly one blob
    storage backend (a local "/uploads/..." path or a remote URL).
    """
    id: int
    name: str
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    image_reference: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary (timestamps as ISO-8601)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_reference": self.image_reference,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        """Create from a database row mapping or a to_dict() payload."""
        return cls(
            id=int(data["id"]),
            name=data["name"],
            description=data.get("description"),
            image_reference=data.get("image_reference"),
            created_at=_as_datetime(data["created_at"]),
            updated_at=_as_datetime(data["updated_at"]),
        )


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class BaseProductRepository(ABC):
    """
    Abstract base class for product persistence.

    Implementations raise PersistenceFailure for any store error.
    Conflicting writes to the same row resolve by the store's row-level
    atomicity (last committed write wins).
    """

    @abstractmethod
    async def setup(self) -> None:
        """
        Initialize the storage (create table/indexes).

        This should be idempotent.
        """
        pass

    @abstractmethod
    async def select_by_id(self, product_id: int) -> Optional[Product]:
        """Get a product by id, or None."""
        pass

    @abstractmethod
    async def select_all_ordered_by_created_desc(self) -> list[Product]:
        """Get every product, newest first."""
        pass

    @abstractmethod
    async def insert(
        self,
        name: str,
        description: Optional[str],
        image_reference: Optional[str],
    ) -> Product:
        """Insert a row and return it with store-assigned id and timestamps."""
        pass

    @abstractmethod
    async def update_by_id(
        self,
        product_id: int,
        name: str,
        description: Optional[str],
        image_reference: Optional[str],
    ) -> Optional[Product]:
        """
        Overwrite all mutable fields and refresh updated_at.

        Returns the updated row, or None if the id no longer exists.
        """
        pass

    @abstractmethod
    async def delete_by_id(self, product_id: int) -> bool:
        """
        Delete a row.

        Returns True if a row was deleted.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass
