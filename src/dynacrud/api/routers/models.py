"""
Registry endpoints.

Endpoints:
    GET  /api/models          - Registered entities with their compiled schema
    GET  /api/models/{name}   - One registered entity
    POST /api/models/reload   - Re-run the config loader and mount new entities

Reloading never redefines a live model: entities already registered keep
the schema they were first registered with (see ModelRegistry.register_or_get).
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from loguru import logger

from ..mount import mount_models
from ...models.document import DynamicModel
from ...schema.compiler import describe_schema

router = APIRouter(prefix="/models", tags=["models"])


def _describe_model(model: DynamicModel, frontend: dict[str, Any] | None) -> dict[str, Any]:
    return {
        "name": model.name,
        "table": model.table_name,
        "options": model.options,
        "schema": describe_schema(model.schema),
        "frontend": frontend,
    }


def _frontend_for(request: Request, name: str) -> dict[str, Any] | None:
    entity = request.app.state.loader.entities.get(name)
    return entity.frontend if entity else None


@router.get("")
async def list_models(request: Request) -> dict[str, Any]:
    """List registered entities."""
    registry = request.app.state.loader.registry
    data = [
        _describe_model(model, _frontend_for(request, name))
        for name, model in registry.get_models().items()
    ]
    return {"object": "list", "data": data, "total": len(data)}


@router.get("/{name}")
async def get_model(name: str, request: Request) -> dict[str, Any]:
    model = request.app.state.loader.registry.get(name)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Model '{name}' not found")
    return _describe_model(model, _frontend_for(request, name))


@router.post("/reload")
async def reload_models(request: Request) -> dict[str, Any]:
    """Fetch the remote config again and mount routers for new entities."""
    models = await request.app.state.loader.load()
    mounted = mount_models(request.app, models)
    logger.info(f"Reload complete: {len(models)} models loaded, {len(mounted)} newly mounted")
    return {"loaded": sorted(models), "mounted": mounted}
