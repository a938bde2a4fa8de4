"""
dynacrud API Server - FastAPI application with config-generated CRUD routes.

Design Pattern:
1. Create FastAPI with a lifespan that loads the remote entity config
2. Add middleware (request logging, CORS)
3. Register built-in routers (/health, /api/models)
4. In the lifespan, mount one generated CRUD router per registered model

Middleware Order (runs in reverse):
1. CORS (runs first - adds headers to all responses)
2. Logging (logs all requests)

Endpoints:
- /                          : API information
- /health                    : Health check
- /api/models                : Registered entities and their compiled schemas
- /api/models/reload         : Re-run the config loader
- /api/{entity}              : Generated CRUD + /export per entity
- /docs                      : OpenAPI documentation

Running:
    # Development (auto-reload)
    uv run python -m dynacrud.api.main

    # Production
    dynacrud serve --workers 4
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from .mount import mount_models
from .routers.models import router as models_router
from ..models.document import DynamicModel
from ..services.config_loader import ConfigLoader
from ..services.postgres import DocumentRepository
from ..settings import settings

VERSION = "0.1.0"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log all incoming HTTP requests and responses.

    - Logs request method, path, client
    - Logs response status and duration
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_host = request.client.host if request.client else "unknown"
        logger.info(f"→ REQUEST: {request.method} {request.url.path} | Client: {client_host}")

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"← RESPONSE: {request.method} {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Duration: {duration_ms:.2f}ms"
        )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads models from the remote config and mounts their routers on startup;
    closes the PostgreSQL pool on shutdown.
    """
    logger.info(f"Starting dynacrud API ({settings.environment})")
    loader: ConfigLoader = app.state.loader

    if settings.remote_config.load_on_startup:
        models = await loader.load()
        mount_models(app, models)
    else:
        logger.info("REMOTE_CONFIG__LOAD_ON_STARTUP disabled - no entities mounted")

    yield

    logger.info("Shutting down dynacrud API")
    await loader.db.disconnect()


def create_app(
    loader: ConfigLoader | None = None,
    repository_factory: Callable[[DynamicModel], Any] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        loader: ConfigLoader to drive model loading (default: settings-based)
        repository_factory: Builds the repository for each mounted model
            (default: DocumentRepository on the loader's PostgresService)

    Returns:
        Configured FastAPI application
    """
    loader = loader or ConfigLoader()

    app = FastAPI(
        title="dynacrud API",
        description="Config-driven CRUD service with runtime-generated models",
        version=VERSION,
        lifespan=lifespan,
        root_path=settings.root_path if settings.root_path else "",
    )

    app.state.loader = loader
    app.state.repository_factory = repository_factory or (
        lambda model: DocumentRepository(model, loader.db)
    )
    app.state.mounted_entities = set()

    app.add_middleware(RequestLoggingMiddleware)

    # Add CORS middleware LAST (runs first in middleware chain)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.get("/")
    async def root():
        """API information endpoint."""
        return {
            "name": "dynacrud API",
            "version": VERSION,
            "entities": sorted(app.state.mounted_entities),
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": VERSION,
            "database": "connected" if loader.db.is_connected else "disconnected",
        }

    app.include_router(models_router, prefix=settings.api.prefix)

    return app


# Create application instance
app = create_app()


# Main entry point for uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "dynacrud.api.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.reload,
    )
