"""
Generic CRUD router factory.

One router per registered DynamicModel; nothing here knows any entity's
shape. Mounted by the app at {API__PREFIX}/{entity}.

Endpoints (relative to the mount point):
    POST   /          - Create a document (400 on validation failure)
    GET    /          - List all documents
    GET    /{id}      - Get a document (404 when absent)
    PUT    /{id}      - Merge-update a document (404 when absent, 400 on validation failure)
    DELETE /{id}      - Delete a document (404 when absent)
    POST   /export    - Download matching documents as CSV

Export body:
    {
      "filter": {"status": "active"},
      "fields": ["name", "address.city"],
      "filename": "materials.csv",
      "limit": 500,
      "sort": {"created_at": -1}
    }
"""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Response
from loguru import logger
from pydantic import BaseModel, Field

from ...models.document import DynamicModel
from ...services.postgres import DocumentRepository
from ...utils.csv_export import render_export


class ExportRequest(BaseModel):
    """Request body for POST /export."""

    filter: dict[str, Any] = Field(default_factory=dict, description="Mongo-style filter document")
    fields: list[str] | None = Field(default=None, description="Explicit columns (dot paths), in order")
    filename: str = Field(default="export.csv", description="Download file name")
    limit: int | None = Field(default=None, ge=0, description="Maximum number of rows (0: no limit)")
    sort: dict[str, Any] | str | None = Field(default=None, description='{"field": 1|-1} or "field -other"')


def _content_disposition(filename: str) -> str:
    safe = filename.replace('"', "").replace("\r", "").replace("\n", "") or "export.csv"
    return f'attachment; filename="{safe}"'


def build_crud_router(
    model: DynamicModel,
    repository: Any = None,
    prefix: str | None = None,
) -> APIRouter:
    """
    Build the CRUD + export router for a model.

    Args:
        model: Registered DynamicModel
        repository: Object with async create/find/get_by_id/update/delete
            (defaults to a DocumentRepository on the process-wide pool)
        prefix: Router prefix (defaults to /{entity name})

    Returns:
        APIRouter with routes under prefix
    """
    repo = repository if repository is not None else DocumentRepository(model)
    router = APIRouter(prefix=prefix or f"/{model.name}", tags=[model.name])

    @router.post("", status_code=201)
    async def create_document(body: dict[str, Any] = Body(...)):
        """Create a document from an arbitrary JSON body."""
        try:
            return await repo.create(body)
        except ValueError as e:
            # pydantic.ValidationError and DuplicateKeyError are both ValueErrors
            logger.info(f"POST /{model.name} rejected: {e}")
            raise HTTPException(status_code=400, detail=str(e))

    @router.post("/export")
    async def export_documents(request: ExportRequest | None = None):
        """Export matching documents as CSV."""
        request = request or ExportRequest()
        try:
            documents = await repo.find(request.filter, sort=request.sort, limit=request.limit)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        content = render_export(documents, request.fields)
        logger.info(f"Exported {len(documents)} {model.name} documents to {request.filename}")
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": _content_disposition(request.filename)},
        )

    @router.get("")
    async def list_documents():
        """List all documents (unfiltered, unpaginated)."""
        return await repo.find({})

    @router.get("/{record_id}")
    async def get_document(record_id: str):
        document = await repo.get_by_id(record_id)
        if document is None:
            raise HTTPException(status_code=404, detail="Not found")
        return document

    @router.put("/{record_id}")
    async def update_document(record_id: str, body: dict[str, Any] = Body(...)):
        """Merge the body onto the stored document and re-validate."""
        try:
            document = await repo.update(record_id, body)
        except ValueError as e:
            logger.info(f"PUT /{model.name}/{record_id} rejected: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        if document is None:
            raise HTTPException(status_code=404, detail="Not found")
        return document

    @router.delete("/{record_id}")
    async def delete_document(record_id: str):
        document = await repo.delete(record_id)
        if document is None:
            raise HTTPException(status_code=404, detail="Not found")
        return {"message": "Deleted", "data": document}

    return router
