"""
Unit tests for the model registry.

Registration is insert-if-absent: the first schema registered under a name
is the one that stays live.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from dynacrud.registry import (
    ModelRegistry,
    clear_model_registry,
    get_model_registry,
    register_or_get_model,
)
from dynacrud.schema import build_schema


@pytest.fixture
def registry():
    return ModelRegistry()


class TestRegisterOrGet:
    """Test idempotent registration."""

    def test_register_new_model(self, registry):
        model = registry.register_or_get("materials", build_schema({"name": "string"}))
        assert model.name == "materials"
        assert "materials" in registry
        assert len(registry) == 1
        assert registry.get("materials") is model

    def test_same_name_returns_same_instance(self, registry):
        schema = build_schema({"name": "string"})
        first = registry.register_or_get("materials", schema)
        second = registry.register_or_get("materials", schema)
        assert first is second
        assert len(registry) == 1

    def test_second_schema_ignored(self, registry):
        """Test that re-registering with a different schema keeps the first one."""
        schema_a = build_schema({"name": "string"})
        schema_b = build_schema({"title": "string", "price": "number"})
        first = registry.register_or_get("materials", schema_a, {"timestamps": True})
        second = registry.register_or_get("materials", schema_b, {"timestamps": False})

        assert second is first
        assert second.schema == schema_a
        assert second.timestamps is True

    def test_distinct_names(self, registry):
        registry.register_or_get("a", build_schema({}))
        registry.register_or_get("b", build_schema({}))
        assert registry.names() == ["a", "b"]

    def test_get_unknown(self, registry):
        assert registry.get("missing") is None

    def test_get_models_is_a_copy(self, registry):
        registry.register_or_get("a", build_schema({}))
        snapshot = registry.get_models()
        snapshot.clear()
        assert "a" in registry

    def test_clear(self, registry):
        registry.register_or_get("a", build_schema({}))
        registry.clear()
        assert len(registry) == 0


class TestConcurrentRegistration:
    """Test that racing registrations converge on one model."""

    def test_threads(self, registry):
        schema = build_schema({"name": {"type": "string", "required": True}})
        with ThreadPoolExecutor(max_workers=8) as pool:
            models = list(pool.map(lambda _: registry.register_or_get("materials", schema), range(32)))

        assert len(registry) == 1
        assert all(model is models[0] for model in models)

    @pytest.mark.asyncio
    async def test_gather(self, registry):
        schema = build_schema({"name": "string"})
        models = await asyncio.gather(
            *[asyncio.to_thread(registry.register_or_get, "materials", schema) for _ in range(10)]
        )
        assert len({id(model) for model in models}) == 1


class TestGlobalRegistry:
    """Test module-level singleton helpers."""

    def test_singleton(self):
        assert get_model_registry() is get_model_registry()

    def test_register_and_clear(self):
        model = register_or_get_model("materials", build_schema({"name": "string"}))
        assert get_model_registry().get("materials") is model

        clear_model_registry()
        assert get_model_registry().get("materials") is None
