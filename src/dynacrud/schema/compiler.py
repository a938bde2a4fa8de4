"""
Field definition compiler and schema builder.

Turns an entity's raw field map from the remote config into a normalized
schema (field name -> Descriptor). Both functions are pure: no I/O, no
registry access, identical input gives an equal descriptor tree.

Usage:
    schema = build_schema({
        "name": {"type": "string", "required": True},
        "tags": ["string"],
        "address": {"street": "string", "zip": "number"},
    })
"""

from typing import Any

from ..exceptions import ConfigError
from .descriptors import ArrayField, Descriptor, EmbeddedField, NormalizedSchema, ScalarField
from .field_specs import ArraySpec, EmbeddedSpec, PrimitiveSpec, TypedSpec, parse_field_spec
from .types import StorageType, resolve_type


def compile_field(raw: Any) -> Descriptor:
    """
    Compile one raw field definition into a Descriptor.

    Recursion depth follows the depth of the config tree; cyclic input is
    not supported.
    """
    spec = parse_field_spec(raw)

    if isinstance(spec, ArraySpec):
        if spec.element is None:
            item: Descriptor = ScalarField(type=StorageType.MIXED)
        else:
            item = compile_field(spec.element)
        return ArrayField(item=item, constraints=dict(spec.constraints))

    if isinstance(spec, PrimitiveSpec):
        return ScalarField(type=resolve_type(spec.type_name))

    if isinstance(spec, TypedSpec):
        return ScalarField(type=resolve_type(spec.type_name), constraints=dict(spec.constraints))

    if isinstance(spec, EmbeddedSpec):
        return EmbeddedField(fields=build_schema(spec.fields), constraints=dict(spec.constraints))

    raise TypeError(f"Unhandled field spec variant: {type(spec).__name__}")


def build_schema(field_map: dict[str, Any]) -> NormalizedSchema:
    """
    Compile every field of an entity definition.

    Raises:
        ConfigError: field_map is not a mapping
    """
    if not isinstance(field_map, dict):
        raise ConfigError(
            f"Entity schema must be an object of field definitions, got {type(field_map).__name__}"
        )
    return {str(name): compile_field(value) for name, value in field_map.items()}


def describe_field(descriptor: Descriptor) -> Any:
    """Render a descriptor back to plain JSON (type names, not Python types)."""
    if isinstance(descriptor, ScalarField):
        return {"type": descriptor.type.value, **descriptor.constraints}
    if isinstance(descriptor, ArrayField):
        if descriptor.constraints:
            return {"type": [describe_field(descriptor.item)], **descriptor.constraints}
        return [describe_field(descriptor.item)]
    if descriptor.constraints:
        return {"type": describe_schema(descriptor.fields), **descriptor.constraints}
    return describe_schema(descriptor.fields)


def describe_schema(schema: NormalizedSchema) -> dict[str, Any]:
    """JSON view of a normalized schema, used by the CLI and /api/models."""
    return {name: describe_field(descriptor) for name, descriptor in schema.items()}
