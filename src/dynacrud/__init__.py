"""
dynacrud - config-driven CRUD service.

A remote JSON document describes entities; dynacrud compiles each entity's
field tree into a normalized schema, registers a live model for it and
serves generic CRUD + CSV export routes.

Usage:
    from dynacrud import build_schema, get_model_registry

    schema = build_schema({"name": {"type": "string", "required": True}})
    model = get_model_registry().register_or_get("materials", schema)
"""

from .registry import ModelRegistry, clear_model_registry, get_model_registry, register_or_get_model
from .schema import build_schema, compile_field, resolve_type
from .services.config_loader import ConfigLoader, load_models

__all__ = [
    "ConfigLoader",
    "ModelRegistry",
    "build_schema",
    "clear_model_registry",
    "compile_field",
    "get_model_registry",
    "load_models",
    "register_or_get_model",
    "resolve_type",
]
