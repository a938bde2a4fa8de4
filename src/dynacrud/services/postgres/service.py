"""
PostgresService - connection pool for the document store.

Each entity table keeps its document in a JSONB column. The pool registers
a JSON codec for jsonb/json on every connection, so query parameters and
results are plain Python dicts/lists instead of JSON text.
"""

import json
from typing import Any, Optional

import asyncpg
from loguru import logger

from ...exceptions import DatabaseNotConnectedError
from ...settings import settings


async def _init_connection(conn: asyncpg.Connection) -> None:
    for type_name in ("jsonb", "json"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class PostgresService:
    """
    PostgreSQL database service.

    Manages the asyncpg pool and exposes thin query helpers that return
    plain dicts.
    """

    def __init__(
        self,
        connection_string: str | None = None,
        pool_min_size: int | None = None,
        pool_max_size: int | None = None,
    ):
        """
        Initialize PostgreSQL service.

        Args:
            connection_string: PostgreSQL connection string (defaults to settings)
            pool_min_size: Minimum pool size (defaults to settings)
            pool_max_size: Maximum pool size (defaults to settings)
        """
        self.connection_string = connection_string or settings.postgres.connection_string
        self.pool_min_size = pool_min_size or settings.postgres.pool_min_size
        self.pool_max_size = pool_max_size or settings.postgres.pool_max_size
        self.pool: Optional[asyncpg.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self.pool is not None

    async def connect(self) -> None:
        """
        Establish database connection pool.

        Raises:
            DatabaseNotConnectedError: no connection string configured
        """
        if not self.connection_string:
            raise DatabaseNotConnectedError(
                "POSTGRES__CONNECTION_STRING is not set. Set it or connect the "
                "PostgresService before loading models."
            )

        logger.info(
            f"Connecting to PostgreSQL with pool size {self.pool_min_size}-{self.pool_max_size}"
        )
        self.pool = await asyncpg.create_pool(
            self.connection_string,
            min_size=self.pool_min_size,
            max_size=self.pool_max_size,
            command_timeout=settings.postgres.command_timeout,
            init=_init_connection,
        )
        logger.info("PostgreSQL connection pool established")

    async def disconnect(self) -> None:
        """Close database connection pool."""
        if self.pool:
            logger.info("Closing PostgreSQL connection pool")
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed")

    def _require_pool(self) -> asyncpg.Pool:
        if not self.pool:
            raise DatabaseNotConnectedError("PostgreSQL pool not connected. Call connect() first.")
        return self.pool

    async def execute(self, query: str, *params: Any) -> str:
        """Execute a statement and return its status tag."""
        async with self._require_pool().acquire() as conn:
            return await conn.execute(query, *params)

    async def fetch(self, query: str, *params: Any) -> list[dict[str, Any]]:
        """Execute a query and return all rows as dicts."""
        async with self._require_pool().acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [dict(row) for row in rows]

    async def fetchrow(self, query: str, *params: Any) -> dict[str, Any] | None:
        """Execute a query and return the first row as a dict (or None)."""
        async with self._require_pool().acquire() as conn:
            row = await conn.fetchrow(query, *params)
        return dict(row) if row else None


_postgres_service: PostgresService | None = None


def get_postgres_service() -> PostgresService:
    """Get the process-wide PostgresService (created lazily from settings)."""
    global _postgres_service
    if _postgres_service is None:
        _postgres_service = PostgresService()
    return _postgres_service
