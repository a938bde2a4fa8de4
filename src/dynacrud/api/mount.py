"""
Mount generated CRUD routers on a running FastAPI app.

Routers can be added after startup (config reload), so mounting is
idempotent per entity name: an entity that already has routes is skipped.
"""

from fastapi import FastAPI
from loguru import logger

from .routers.crud import build_crud_router
from ..models.document import DynamicModel
from ..settings import settings

# Paths under the API prefix that generated routers must not shadow
RESERVED_ENTITY_NAMES = frozenset({"models"})


def mount_models(app: FastAPI, models: dict[str, DynamicModel]) -> list[str]:
    """
    Include a CRUD router for every model not mounted yet.

    Returns:
        Names of the entities mounted by this call
    """
    mounted: set[str] = app.state.mounted_entities
    newly_mounted = []

    for name, model in models.items():
        if name in mounted:
            continue
        if name in RESERVED_ENTITY_NAMES:
            logger.warning(f'Entity "{name}" collides with a built-in route; not mounted')
            continue

        repository = app.state.repository_factory(model)
        app.include_router(build_crud_router(model, repository), prefix=settings.api.prefix)
        mounted.add(name)
        newly_mounted.append(name)
        logger.info(f"Mounted CRUD routes at {settings.api.prefix}/{name}")

    if newly_mounted:
        # regenerate /docs with the new routes
        app.openapi_schema = None

    return newly_mounted
