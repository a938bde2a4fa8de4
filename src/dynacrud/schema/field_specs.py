"""
Field specification variants.

A raw field definition from the remote config is one of four shapes.
parse_field_spec() classifies the raw JSON once so the compiler can
dispatch over a closed set of types instead of sniffing dict keys.

    "string"                            -> PrimitiveSpec
    ["string"]                          -> ArraySpec
    {"type": "string", "required": true} -> TypedSpec
    {"type": {...}} / {"street": ...}   -> EmbeddedSpec
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class PrimitiveSpec:
    """Bare type name, e.g. "number". None for non-string JSON scalars."""

    type_name: str | None


@dataclass(frozen=True)
class ArraySpec:
    """Homogeneous array. Only the first element of the raw list is kept."""

    element: Any = None
    constraints: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TypedSpec:
    """Scalar type plus auxiliary constraints (required, unique, default...)."""

    type_name: Any
    constraints: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmbeddedSpec:
    """Nested sub-document. fields is the raw field map of the sub-document."""

    fields: dict[str, Any]
    constraints: dict[str, Any] = field(default_factory=dict)


FieldSpec = Union[PrimitiveSpec, ArraySpec, TypedSpec, EmbeddedSpec]


def _has_type(raw: dict[str, Any]) -> bool:
    value = raw.get("type")
    return value is not None and value != ""


def parse_field_spec(raw: Any) -> FieldSpec:
    """
    Classify a raw field definition.

    A mapping whose "type" value is itself a mapping is a sub-document whose
    fields live under "type"; its sibling keys become the sub-document's
    constraints. A mapping whose "type" is a list is an array with
    constraints.
    """
    if isinstance(raw, (list, tuple)):
        return ArraySpec(element=raw[0] if raw else None)

    if isinstance(raw, str):
        return PrimitiveSpec(type_name=raw)

    if isinstance(raw, dict):
        if not _has_type(raw):
            return EmbeddedSpec(fields=dict(raw))

        type_value = raw["type"]
        constraints = {key: value for key, value in raw.items() if key != "type"}

        if isinstance(type_value, dict):
            return EmbeddedSpec(fields=dict(type_value), constraints=constraints)
        if isinstance(type_value, (list, tuple)):
            element = type_value[0] if type_value else None
            return ArraySpec(element=element, constraints=constraints)
        return TypedSpec(type_name=type_value, constraints=constraints)

    # numbers, booleans, null
    return PrimitiveSpec(type_name=None)
