"""
Config Loader - fetch the remote entity config and materialize models.

Design Pattern:
1. Make sure a PostgreSQL pool exists (auto-connect from settings if allowed)
2. GET the remote JSON document (optionally wrapped in a "record" envelope)
3. Skip "metadata" and entries without a "schema"
4. For each entity: build_schema -> registry.register_or_get -> ensure_table

Remote config shape:
    {
      "materials": {
        "schema": {"name": {"type": "string", "required": true}, "tags": ["string"]},
        "options": {"strict": false},
        "frontend": {"fields": [...]}
      },
      "metadata": {"version": 3}
    }

Failure policy:
- Default: failures are logged and load() returns the models registered so
  far in this pass. A failing entity is skipped; the others still load.
- fail_fast=True (REMOTE_CONFIG__FAIL_FAST): the first error is raised.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from ..exceptions import ConfigError, DatabaseNotConnectedError
from ..models.document import DynamicModel
from ..registry import ModelRegistry, get_model_registry
from ..schema.compiler import build_schema
from ..settings import settings
from .postgres import DocumentRepository, PostgresService, get_postgres_service

RESERVED_KEYS = frozenset({"metadata"})


@dataclass
class EntityConfig:
    """One entity entry of the remote config."""

    name: str
    schema: dict[str, Any]
    options: dict[str, Any] = field(default_factory=dict)
    frontend: dict[str, Any] | None = None


async def ensure_connected(db: PostgresService, auto_connect: bool = True) -> None:
    """
    Make sure db has a live pool.

    Raises:
        DatabaseNotConnectedError: not connected and auto_connect is off, or
            no connection string is configured
    """
    if db.is_connected:
        return

    if not auto_connect:
        raise DatabaseNotConnectedError(
            "PostgreSQL not connected. Enable POSTGRES__AUTO_CONNECT or connect "
            "the PostgresService before loading models."
        )

    logger.info("PostgreSQL not connected - attempting to connect...")
    try:
        await db.connect()
    except Exception as e:
        logger.error(f"PostgreSQL connection failed: {e}")
        raise


def unwrap_config(payload: Any) -> dict[str, Any]:
    """Strip an optional {"record": ...} envelope and check the result is an object."""
    config = payload.get("record", payload) if isinstance(payload, dict) else payload
    if not isinstance(config, dict) or not config:
        raise ConfigError("Invalid remote config - expected an object of model configs.")
    return config


async def fetch_remote_config(
    url: str | None = None,
    timeout: float | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """
    GET the remote config document.

    Args:
        url: Config URL (defaults to REMOTE_CONFIG__URL)
        timeout: HTTP timeout in seconds (defaults to REMOTE_CONFIG__TIMEOUT)
        http_client: Optional client to reuse (tests pass one with a mock transport)

    Raises:
        ConfigError: no URL configured, or the body is not a JSON object
        httpx.HTTPError: transport failure or non-2xx status
    """
    url = url or settings.remote_config.url
    if not url:
        raise ConfigError("REMOTE_CONFIG__URL is not set - nowhere to load entity configs from.")

    timeout = timeout if timeout is not None else settings.remote_config.timeout
    logger.info(f"Fetching remote config from {url}")

    if http_client is not None:
        response = await http_client.get(url, timeout=timeout)
    else:
        async with httpx.AsyncClient() as client:
            response = await client.get(url, timeout=timeout)
    response.raise_for_status()

    try:
        payload = response.json()
    except ValueError as e:
        raise ConfigError(f"Remote config at {url} is not valid JSON: {e}") from e

    return unwrap_config(payload)


def parse_entity_configs(config: dict[str, Any]) -> dict[str, EntityConfig]:
    """
    Pick entity entries out of a config document.

    Entries named "metadata", non-object entries and entries without a
    "schema" are annotations, not entities; they are skipped silently.
    """
    entities: dict[str, EntityConfig] = {}
    for name, entry in config.items():
        if name in RESERVED_KEYS or not isinstance(entry, dict) or not entry.get("schema"):
            continue

        options = entry.get("options") or {}
        if not isinstance(options, dict):
            raise ConfigError(f'Options for "{name}" must be an object, got {type(options).__name__}')

        frontend = entry.get("frontend")
        entities[name] = EntityConfig(
            name=name,
            schema=entry["schema"],
            options=options,
            frontend=frontend if isinstance(frontend, dict) else None,
        )
    return entities


class ConfigLoader:
    """
    Drives schema building and model registration for every entity.

    Keeps the entity configs from the last successful fetch so the API can
    serve their frontend blocks.
    """

    def __init__(
        self,
        db: PostgresService | None = None,
        registry: ModelRegistry | None = None,
        url: str | None = None,
        auto_connect: bool | None = None,
        fail_fast: bool | None = None,
    ):
        self.db = db if db is not None else get_postgres_service()
        self.registry = registry if registry is not None else get_model_registry()
        self.url = url or settings.remote_config.url
        self.auto_connect = settings.postgres.auto_connect if auto_connect is None else auto_connect
        self.fail_fast = settings.remote_config.fail_fast if fail_fast is None else fail_fast
        self.entities: dict[str, EntityConfig] = {}

    async def load_entity(self, entity: EntityConfig) -> DynamicModel:
        schema = build_schema(entity.schema)
        model = self.registry.register_or_get(entity.name, schema, entity.options)
        await DocumentRepository(model, self.db).ensure_table()
        return model

    async def load(
        self,
        config: dict[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> dict[str, DynamicModel]:
        """
        Load every entity of the remote config.

        Args:
            config: Already-fetched config document (skips the HTTP GET)
            http_client: Optional httpx client for the fetch

        Returns:
            Mapping of entity name to model for the entities loaded in this pass
        """
        models: dict[str, DynamicModel] = {}
        try:
            logger.info("Loading models from remote config...")
            await ensure_connected(self.db, auto_connect=self.auto_connect)

            if config is None:
                config = await fetch_remote_config(self.url, http_client=http_client)
            else:
                config = unwrap_config(config)

            entities = parse_entity_configs(config)
            self.entities.update(entities)

            for name, entity in entities.items():
                try:
                    models[name] = await self.load_entity(entity)
                    logger.info(f"Model created/loaded: {name}")
                except Exception as e:
                    if self.fail_fast:
                        raise
                    logger.error(f'Failed to load model "{name}": {e}')

            logger.info(f"Loaded {len(models)}/{len(entities)} models")
        except Exception as e:
            if self.fail_fast:
                raise
            logger.error(f"Failed to load models: {e}")

        return models


async def load_models(**kwargs: Any) -> dict[str, DynamicModel]:
    """One-shot load with a fresh ConfigLoader (see ConfigLoader for arguments)."""
    config = kwargs.pop("config", None)
    http_client = kwargs.pop("http_client", None)
    return await ConfigLoader(**kwargs).load(config=config, http_client=http_client)
