"""Schema compilation: raw config field maps -> normalized descriptors."""

from .compiler import build_schema, compile_field, describe_field, describe_schema
from .descriptors import ArrayField, Descriptor, EmbeddedField, NormalizedSchema, ScalarField
from .field_specs import ArraySpec, EmbeddedSpec, FieldSpec, PrimitiveSpec, TypedSpec, parse_field_spec
from .types import StorageType, resolve_type

__all__ = [
    "ArrayField",
    "ArraySpec",
    "Descriptor",
    "EmbeddedField",
    "EmbeddedSpec",
    "FieldSpec",
    "NormalizedSchema",
    "PrimitiveSpec",
    "ScalarField",
    "StorageType",
    "TypedSpec",
    "build_schema",
    "compile_field",
    "describe_field",
    "describe_schema",
    "parse_field_spec",
    "resolve_type",
]
