"""
Pytest configuration and fixtures for dynacrud tests.

PostgreSQL is replaced by InMemoryRepository, which follows the
DocumentRepository contract (validation through the model, dict documents,
None for unknown ids) without a database.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest

from dynacrud.exceptions import DuplicateKeyError
from dynacrud.models.document import DynamicModel
from dynacrud.registry import clear_model_registry, get_model_registry
from dynacrud.schema import build_schema
from dynacrud.services.postgres import parse_record_id


class InMemoryRepository:
    """DocumentRepository stand-in keeping rows in a dict."""

    def __init__(self, model: DynamicModel):
        self.model = model
        self.rows: dict[str, dict[str, Any]] = {}
        self.find_calls: list[dict[str, Any]] = []

    def _to_document(self, record_id: str, row: dict[str, Any]) -> dict[str, Any]:
        document = {"id": record_id, **row["data"]}
        if self.model.timestamps:
            document["created_at"] = row["created_at"]
            document["updated_at"] = row["updated_at"]
        return document

    def _check_unique(self, document: dict[str, Any], exclude: str | None = None) -> None:
        for field_name in self.model.unique_fields:
            for record_id, row in self.rows.items():
                if record_id != exclude and field_name in document and row["data"].get(field_name) == document[field_name]:
                    raise DuplicateKeyError(f"Duplicate key for {self.model.name}: {field_name}")

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        document = self.model.validate_document(data)
        self._check_unique(document)
        record_id = str(uuid4())
        now = datetime.now(timezone.utc)
        self.rows[record_id] = {"data": document, "created_at": now, "updated_at": now}
        return self._to_document(record_id, self.rows[record_id])

    async def find(self, filters=None, sort=None, limit=None) -> list[dict[str, Any]]:
        self.find_calls.append({"filters": filters, "sort": sort, "limit": limit})
        documents = [self._to_document(record_id, row) for record_id, row in self.rows.items()]
        for key, value in (filters or {}).items():
            documents = [d for d in documents if d.get(key) == value]
        if isinstance(sort, dict):
            for key, direction in reversed(list(sort.items())):
                documents.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction in (-1, "desc"))
        if limit:
            documents = documents[:limit]
        return documents

    async def get_by_id(self, record_id: Any) -> dict[str, Any] | None:
        if parse_record_id(record_id) is None or record_id not in self.rows:
            return None
        return self._to_document(record_id, self.rows[record_id])

    async def update(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any] | None:
        current = await self.get_by_id(record_id)
        if current is None:
            return None
        document = self.model.validate_document({**current, **data})
        self._check_unique(document, exclude=record_id)
        row = self.rows[record_id]
        row["data"] = document
        row["updated_at"] = datetime.now(timezone.utc)
        return self._to_document(record_id, row)

    async def delete(self, record_id: Any) -> dict[str, Any] | None:
        current = await self.get_by_id(record_id)
        if current is None:
            return None
        del self.rows[record_id]
        return current


@pytest.fixture(autouse=True)
def clean_registry():
    """Clear model registry before and after each test."""
    clear_model_registry()
    yield
    clear_model_registry()


@pytest.fixture
def materials_config() -> dict[str, Any]:
    """Remote-config entry for a materials entity."""
    return {
        "schema": {
            "name": {"type": "string", "required": True, "trim": True},
            "sku": {"type": "string", "unique": True},
            "description": "string",
            "price": {"type": "number", "min": 0},
            "inStock": "boolean",
            "tags": ["string"],
            "supplier": {"name": "string", "address": {"city": "string", "zip": "string"}},
        },
        "options": {"strict": False},
    }


@pytest.fixture
def materials_model(materials_config) -> DynamicModel:
    schema = build_schema(materials_config["schema"])
    return get_model_registry().register_or_get("materials", schema, materials_config["options"])


@pytest.fixture
def materials_repository(materials_model) -> InMemoryRepository:
    return InMemoryRepository(materials_model)


class StubDB:
    """PostgresService stand-in that accepts DDL and reports itself connected."""

    def __init__(self):
        self.is_connected = True
        self.statements: list[str] = []

    async def connect(self) -> None:
        self.is_connected = True

    async def disconnect(self) -> None:
        self.is_connected = False

    async def execute(self, query: str, *params: Any) -> str:
        self.statements.append(query)
        return "OK"


@pytest.fixture
def stub_db() -> StubDB:
    return StubDB()


@pytest.fixture
def memory_repositories():
    """Repository factory for create_app(); built repositories are kept on .repositories."""
    repositories: dict[str, InMemoryRepository] = {}

    def factory(model: DynamicModel) -> InMemoryRepository:
        repositories[model.name] = InMemoryRepository(model)
        return repositories[model.name]

    factory.repositories = repositories
    return factory
