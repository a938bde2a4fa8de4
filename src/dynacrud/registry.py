"""
Model Registry - process-wide store of config-defined entity models.

At most one live DynamicModel exists per entity name for the life of the
process. Registering a name that is already present is a no-op that hands
back the existing model: a config reload (or two requests racing to load
the same entity) must never redefine a model that routes are already
serving.

Usage:
    from dynacrud.registry import get_model_registry

    registry = get_model_registry()
    model = registry.register_or_get("materials", schema, {"strict": False})
    same = registry.register_or_get("materials", other_schema)
    assert same is model
"""

from typing import Any

from loguru import logger

from .models.document import DynamicModel
from .schema.descriptors import NormalizedSchema


class ModelRegistry:
    """Keyed store of DynamicModel handles with insert-if-absent registration."""

    def __init__(self) -> None:
        self._models: dict[str, DynamicModel] = {}

    def clear(self) -> None:
        """Clear all registered models. Useful for testing."""
        self._models.clear()
        logger.debug("Model registry cleared")

    def register_or_get(
        self,
        name: str,
        schema: NormalizedSchema,
        options: dict[str, Any] | None = None,
    ) -> DynamicModel:
        """
        Register a model for an entity, or return the one already registered.

        When the name is taken the supplied schema and options are ignored
        entirely. The insert itself is a single dict.setdefault, so callers
        racing on a new name all end up holding the same instance.

        Args:
            name: Entity name from the remote config
            schema: Normalized schema from build_schema()
            options: Entity options, merged over {"timestamps": True}

        Returns:
            The live DynamicModel for name
        """
        existing = self._models.get(name)
        if existing is not None:
            logger.warning(f'Model "{name}" already exists. Reusing existing model.')
            return existing

        candidate = DynamicModel.create(name, schema, options)
        model = self._models.setdefault(name, candidate)
        if model is not candidate:
            logger.warning(f'Model "{name}" was registered concurrently. Reusing existing model.')
        else:
            logger.debug(f"Registered model: {name}")
        return model

    def get(self, name: str) -> DynamicModel | None:
        return self._models.get(name)

    def names(self) -> list[str]:
        return list(self._models)

    def get_models(self) -> dict[str, DynamicModel]:
        """Snapshot of all registered models keyed by entity name."""
        return self._models.copy()

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __len__(self) -> int:
        return len(self._models)


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

_model_registry = ModelRegistry()


def get_model_registry() -> ModelRegistry:
    """Get the global model registry instance."""
    return _model_registry


def register_or_get_model(
    name: str,
    schema: NormalizedSchema,
    options: dict[str, Any] | None = None,
) -> DynamicModel:
    """Register (or reuse) a model in the global registry."""
    return _model_registry.register_or_get(name, schema, options)


def clear_model_registry() -> None:
    """Clear all model registrations. Useful for testing."""
    _model_registry.clear()
