"""
PostgreSQL product repository.

Uses SQLAlchemy async (asyncpg driver) with plain SQL statements.
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.errors import PersistenceFailure
from core.logging import get_logger
from core.repository.base import BaseProductRepository, Product


logger = get_logger(__name__)

_COLUMNS = "id, name, description, image_reference, created_at, updated_at"


class PostgresProductRepository(BaseProductRepository):
    """
    PostgreSQL-based product repository.

    Every SQLAlchemy error is re-raised as PersistenceFailure.
    """

    def __init__(
        self,
        async_connection_string: str,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        """
        Initialize PostgreSQL product repository.

        Args:
            async_connection_string: PostgreSQL async connection URI (asyncpg format)
            echo: Whether to echo SQL statements
            pool_size: Connection pool size
            max_overflow: Extra connections allowed above pool_size
        """
        self._connection_string = async_connection_string
        self._echo = echo
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def setup(self) -> None:
        """Initialize connection and create table/indexes if not exists."""
        self._engine = create_async_engine(
            self._connection_string,
            echo=self._echo,
            pool_pre_ping=True,
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
        )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("""
                    CREATE TABLE IF NOT EXISTS products (
                        id SERIAL PRIMARY KEY,
                        name VARCHAR(255) NOT NULL CHECK (name <> ''),
                        description TEXT,
                        image_reference TEXT,
                        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
                    )
                """))

                await conn.execute(text("""
                    CREATE INDEX IF NOT EXISTS idx_products_created_at
                    ON products(created_at DESC)
                """))
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to initialize products table: {e}") from e

        logger.info("PostgreSQL product repository initialized")

    def _get_session(self) -> AsyncSession:
        """Get a new session."""
        if self._session_factory is None:
            raise RuntimeError(
                "Repository not initialized. Call setup() first."
            )
        return self._session_factory()

    async def select_by_id(self, product_id: int) -> Optional[Product]:
        try:
            async with self._get_session() as session:
                result = await session.execute(
                    text(f"SELECT {_COLUMNS} FROM products WHERE id = :id"),
                    {"id": product_id},
                )
                row = result.mappings().first()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to fetch product {product_id}: {e}") from e

        return Product.from_dict(dict(row)) if row is not None else None

    async def select_all_ordered_by_created_desc(self) -> list[Product]:
        try:
            async with self._get_session() as session:
                result = await session.execute(
                    text(f"SELECT {_COLUMNS} FROM products ORDER BY created_at DESC, id DESC")
                )
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to list products: {e}") from e

        return [Product.from_dict(dict(row)) for row in rows]

    async def insert(
        self,
        name: str,
        description: Optional[str],
        image_reference: Optional[str],
    ) -> Product:
        try:
            async with self._get_session() as session:
                result = await session.execute(
                    text(f"""
                        INSERT INTO products (name, description, image_reference)
                        VALUES (:name, :description, :image_reference)
                        RETURNING {_COLUMNS}
                    """),
                    {
                        "name": name,
                        "description": description,
                        "image_reference": image_reference,
                    },
                )
                row = result.mappings().one()
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to create product: {e}") from e

        logger.debug("Product row inserted", product_id=row["id"])
        return Product.from_dict(dict(row))

    async def update_by_id(
        self,
        product_id: int,
        name: str,
        description: Optional[str],
        image_reference: Optional[str],
    ) -> Optional[Product]:
        try:
            async with self._get_session() as session:
                result = await session.execute(
                    text(f"""
                        UPDATE products
                        SET name = :name,
                            description = :description,
                            image_reference = :image_reference,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = :id
                        RETURNING {_COLUMNS}
                    """),
                    {
                        "id": product_id,
                        "name": name,
                        "description": description,
                        "image_reference": image_reference,
                    },
                )
                row = result.mappings().first()
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to update product {product_id}: {e}") from e

        return Product.from_dict(dict(row)) if row is not None else None

    async def delete_by_id(self, product_id: int) -> bool:
        try:
            async with self._get_session() as session:
                result = await session.execute(
                    text("DELETE FROM products WHERE id = :id"),
                    {"id": product_id},
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to delete product {product_id}: {e}") from e

        return result.rowcount > 0

    async def close(self) -> None:
        """Close database engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
        logger.info("PostgreSQL product repository closed")
