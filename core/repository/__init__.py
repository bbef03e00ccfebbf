"""
Product persistence layer.

Provides the narrow query contract used by the product service and its
PostgreSQL implementation.
"""

from core.repository.base import BaseProductRepository, Product
from core.repository.postgres import PostgresProductRepository

__all__ = [
    "BaseProductRepository",
    "PostgresProductRepository",
    "Product",
]
