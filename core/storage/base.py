"""
Abstract base class for image blob storage.

A backend persists raw bytes and hands back a durable reference string.
The reference is opaque to the rest of the system, but each backend can
tell whether a reference is one of its own so a reference is never
handed to the wrong backend for removal.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from core.errors import StorageFailure
from core.results import Outcome


@dataclass
class StorageResult:
    """
    Result of a store or remove attempt.

    reference is set only when a store was applied.
    """
    outcome: Outcome
    reference: Optional[str] = None
    backend: Optional[str] = None
    error: Optional[StorageFailure] = None

    @property
    def applied(self) -> bool:
        return self.outcome.applied


class BlobStorage(ABC):
    """
    Abstract interface for blob storage backends.

    Both operations raise StorageFailure on error; ImageStore turns
    that into an absorbed StorageResult.
    """

    name: str = "blob"

    @abstractmethod
    async def store(self, data: bytes, name_hint: str) -> str:
        """
        Persist bytes.

        Args:
            data: File content
            name_hint: Original file name, used for the extension/key

        Returns:
            Durable reference to the stored blob
        """
        pass

    @abstractmethod
    async def remove(self, reference: str) -> None:
        """Delete a blob previously returned by store()."""
        pass

    @abstractmethod
    def owns(self, reference: str) -> bool:
        """Check whether a reference has this backend's format."""
        pass
