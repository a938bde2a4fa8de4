"""Generic repository for config-defined entities.

Single repository class that works with any DynamicModel.
No need for entity-specific repository classes.

Usage:
    from dynacrud.services.postgres import DocumentRepository

    repo = DocumentRepository(model, db)
    await repo.ensure_table()
    doc = await repo.create({"name": "Steel"})
    docs = await repo.find({"name": "Steel"}, sort={"created_at": -1}, limit=10)
"""

from typing import Any
from uuid import UUID

import asyncpg
from loguru import logger

from .service import PostgresService, get_postgres_service
from .sql_builder import (
    build_create_table,
    build_delete,
    build_field_index,
    build_insert,
    build_select,
    build_select_by_id,
    build_update,
)
from ...exceptions import DuplicateKeyError
from ...models.document import DynamicModel


def parse_record_id(record_id: Any) -> UUID | None:
    """UUID for a path identifier, or None when it cannot be one."""
    if isinstance(record_id, UUID):
        return record_id
    try:
        return UUID(str(record_id))
    except ValueError:
        return None


class DocumentRepository:
    """CRUD over one entity table. Documents go in and come out as plain dicts."""

    def __init__(self, model: DynamicModel, db: PostgresService | None = None):
        """
        Initialize repository.

        Args:
            model: Registered DynamicModel
            db: Optional PostgresService instance (process-wide service if None)
        """
        self.model = model
        self.db = db if db is not None else get_postgres_service()
        self.table_name = model.table_name

    def to_document(self, row: dict[str, Any]) -> dict[str, Any]:
        """Row -> API document: id first, then the stored fields, then timestamps."""
        document: dict[str, Any] = {"id": str(row["id"])}
        document.update(row.get("data") or {})
        if self.model.timestamps:
            document["created_at"] = row.get("created_at")
            document["updated_at"] = row.get("updated_at")
        return document

    async def ensure_table(self) -> None:
        """
        Create the entity table and its field indexes if missing.

        Concurrent loaders can race on CREATE ... IF NOT EXISTS; the loser's
        duplicate-object error means the table is there, which is all we need.
        """
        statements = [build_create_table(self.table_name)]
        statements += [build_field_index(self.table_name, name, unique=True) for name in self.model.unique_fields]
        statements += [build_field_index(self.table_name, name) for name in self.model.indexed_fields]

        for statement in statements:
            try:
                await self.db.execute(statement)
            except (asyncpg.DuplicateTableError, asyncpg.DuplicateObjectError, asyncpg.UniqueViolationError) as e:
                logger.debug(f"{self.table_name}: object already created concurrently ({e})")

        logger.debug(f"Table ready: {self.table_name}")

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and insert a document.

        Raises:
            pydantic.ValidationError: document violates the entity schema
            DuplicateKeyError: unique field already taken
        """
        document = self.model.validate_document(data)
        sql, params = build_insert(self.table_name, document)
        try:
            row = await self.db.fetchrow(sql, *params)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(f"Duplicate key for {self.model.name}: {e.detail or e}") from e
        return self.to_document(row)

    async def find(
        self,
        filters: dict[str, Any] | None = None,
        sort: dict[str, Any] | str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Find documents matching a Mongo-style filter.

        Args:
            filters: Filter document (see sql_builder)
            sort: {"field": 1 | -1} or "field -other"
            limit: Optional row limit (0 or None: no limit)

        Returns:
            List of documents (empty list when nothing matches)
        """
        sql, params = build_select(self.table_name, filters, sort=sort, limit=limit)
        rows = await self.db.fetch(sql, *params)
        return [self.to_document(row) for row in rows]

    async def get_by_id(self, record_id: Any) -> dict[str, Any] | None:
        record_uuid = parse_record_id(record_id)
        if record_uuid is None:
            return None

        sql, params = build_select_by_id(self.table_name, record_uuid)
        row = await self.db.fetchrow(sql, *params)
        return self.to_document(row) if row else None

    async def update(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any] | None:
        """
        Merge data onto the stored document (top-level keys) and re-validate.

        Returns:
            Updated document, or None if no document has this id
        """
        current = await self.get_by_id(record_id)
        if current is None:
            return None

        merged = {**current, **data}
        document = self.model.validate_document(merged)
        sql, params = build_update(self.table_name, parse_record_id(record_id), document)
        try:
            row = await self.db.fetchrow(sql, *params)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(f"Duplicate key for {self.model.name}: {e.detail or e}") from e
        return self.to_document(row) if row else None

    async def delete(self, record_id: Any) -> dict[str, Any] | None:
        """Delete a document and return it, or None if absent."""
        record_uuid = parse_record_id(record_id)
        if record_uuid is None:
            return None

        sql, params = build_delete(self.table_name, record_uuid)
        row = await self.db.fetchrow(sql, *params)
        return self.to_document(row) if row else None
