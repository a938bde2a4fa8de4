"""
DynamicModel - the live handle for one config-defined entity.

A DynamicModel owns the entity's normalized schema and a pydantic document
class generated from it at runtime (pydantic.create_model). The document
class is what create/update run through, so config constraints such as
required, enum, min/max and match are enforced without any entity code.

Options (from the entity's "options" block, merged over timestamps=True):
- timestamps: maintain created_at / updated_at columns
- strict: False keeps unknown keys (open documents); default drops them
- collection: table name override

Example:
    model = DynamicModel.create("materials", build_schema({"name": {"type": "string", "required": True}}))
    model.validate_document({"name": "Steel"})
    # {'name': 'Steel'}
"""

import re
from dataclasses import dataclass
from typing import Annotated, Any, Optional

from loguru import logger
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, create_model

from ..schema.descriptors import ArrayField, Descriptor, EmbeddedField, NormalizedSchema, ScalarField
from ..schema.types import StorageType
from ..utils.csv_export import format_timestamp

# Keys owned by the persistence layer; never taken from request bodies
SYSTEM_FIELDS = frozenset({"id", "_id", "created_at", "updated_at"})

# Constraints the document builder understands; the rest are kept as schema extras
KNOWN_CONSTRAINTS = frozenset(
    {
        "required",
        "default",
        "enum",
        "min",
        "max",
        "minlength",
        "maxlength",
        "minLength",
        "maxLength",
        "match",
        "trim",
        "lowercase",
        "uppercase",
    }
)

DEFAULT_OPTIONS: dict[str, Any] = {"timestamps": True}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _string_transform(transform):
    def apply(value: Any) -> Any:
        return transform(value) if isinstance(value, str) else value

    return BeforeValidator(apply)


def _allowed_values(enum: Any) -> list[Any] | None:
    # accepts ["a", "b"] or {"values": ["a", "b"], "message": "..."}
    if isinstance(enum, dict):
        enum = enum.get("values")
    if isinstance(enum, (list, tuple)):
        return list(enum)
    return None


def _one_of(allowed: list[Any]):
    def check(value: Any) -> Any:
        if value is not None and value not in allowed:
            raise ValueError(f"value must be one of {allowed!r}")
        return value

    return AfterValidator(check)


def _within(low: Any, high: Any):
    def check(value: Any) -> Any:
        if value is None:
            return value
        if low is not None and value < low:
            raise ValueError(f"value must be greater than or equal to {low}")
        if high is not None and value > high:
            raise ValueError(f"value must be less than or equal to {high}")
        return value

    return AfterValidator(check)


def _scalar_annotation(descriptor: ScalarField) -> Any:
    """Python annotation for a scalar, with constraints folded into Annotated metadata."""
    c = descriptor.constraints
    base = descriptor.type.python_type
    metadata: list[Any] = []
    field_kwargs: dict[str, Any] = {}

    if descriptor.type is StorageType.STRING:
        if c.get("trim"):
            metadata.append(_string_transform(str.strip))
        if c.get("lowercase"):
            metadata.append(_string_transform(str.lower))
        if c.get("uppercase"):
            metadata.append(_string_transform(str.upper))

        min_length = c.get("minlength", c.get("minLength"))
        max_length = c.get("maxlength", c.get("maxLength"))
        if isinstance(min_length, int) and not isinstance(min_length, bool):
            field_kwargs["min_length"] = min_length
        if isinstance(max_length, int) and not isinstance(max_length, bool):
            field_kwargs["max_length"] = max_length
        if isinstance(c.get("match"), str):
            field_kwargs["pattern"] = c["match"]

    if descriptor.type is StorageType.DATE:
        # stored and returned as UTC, e.g. 2024-05-01T09:30:00.000Z; naive input counts as UTC
        metadata.append(PlainSerializer(format_timestamp, return_type=str, when_used="json"))

    if descriptor.type is StorageType.NUMBER:
        low = c.get("min") if _is_number(c.get("min")) else None
        high = c.get("max") if _is_number(c.get("max")) else None
        if low is not None or high is not None:
            metadata.append(_within(low, high))

    allowed = _allowed_values(c.get("enum"))
    if allowed is not None:
        metadata.append(_one_of(allowed))

    if field_kwargs:
        metadata.insert(0, Field(**field_kwargs))
    if not metadata:
        return base
    return Annotated[(base, *metadata)]


def _model_config(strict: bool) -> ConfigDict:
    return ConfigDict(extra="ignore" if strict else "allow", populate_by_name=True)


def _annotation(owner: str, field_name: str, descriptor: Descriptor, strict: bool) -> Any:
    if isinstance(descriptor, ScalarField):
        return _scalar_annotation(descriptor)
    if isinstance(descriptor, ArrayField):
        return list[_annotation(owner, field_name, descriptor.item, strict)]
    if not descriptor.fields:
        # {} in the config means "any object"
        return dict[str, Any]
    return build_document_model(f"{owner}_{_class_name(field_name)}", descriptor.fields, strict=strict)


def _field_definition(owner: str, field_name: str, descriptor: Descriptor, strict: bool) -> tuple[Any, Any]:
    annotation = _annotation(owner, field_name, descriptor, strict)
    extra = {k: v for k, v in descriptor.constraints.items() if k not in KNOWN_CONSTRAINTS}
    field_kwargs: dict[str, Any] = {"alias": field_name}
    if extra:
        field_kwargs["json_schema_extra"] = extra

    if descriptor.required:
        return annotation, Field(..., **field_kwargs)

    if "default" in descriptor.constraints:
        return Optional[annotation], Field(default=descriptor.constraints["default"], **field_kwargs)
    if isinstance(descriptor, ArrayField):
        return Optional[annotation], Field(default_factory=list, **field_kwargs)
    return Optional[annotation], Field(default=None, **field_kwargs)


def _class_name(name: str) -> str:
    parts = re.split(r"[^0-9A-Za-z]+", name)
    class_name = "".join(part[:1].upper() + part[1:] for part in parts if part)
    if not class_name or class_name[0].isdigit():
        class_name = f"Document{class_name}"
    return class_name


def build_document_model(name: str, schema: NormalizedSchema, strict: bool = True) -> type[BaseModel]:
    """
    Create a pydantic model class from a normalized schema.

    Field names are arbitrary JSON keys, so each field gets a generated
    Python identifier and keeps its config name as the alias.
    """
    definitions: dict[str, Any] = {}
    for index, (field_name, descriptor) in enumerate(schema.items()):
        definitions[f"field_{index}"] = _field_definition(name, field_name, descriptor, strict)

    return create_model(_class_name(name), __config__=_model_config(strict), **definitions)


def table_name_for(name: str, options: dict[str, Any] | None = None) -> str:
    """Safe SQL identifier for an entity (options.collection wins over the entity name)."""
    raw = (options or {}).get("collection") or name
    table = re.sub(r"[^a-z0-9_]", "_", str(raw).strip().lower())
    if not table or table[0].isdigit():
        table = f"t_{table}"
    return table[:63]


@dataclass
class DynamicModel:
    """Registered, queryable handle for one entity."""

    name: str
    schema: NormalizedSchema
    options: dict[str, Any]
    document_class: type[BaseModel]
    table_name: str

    @classmethod
    def create(
        cls,
        name: str,
        schema: NormalizedSchema,
        options: dict[str, Any] | None = None,
    ) -> "DynamicModel":
        merged = {**DEFAULT_OPTIONS, **(options or {})}
        strict = merged.get("strict", True) is not False
        document_class = build_document_model(name, schema, strict=strict)
        model = cls(
            name=name,
            schema=schema,
            options=merged,
            document_class=document_class,
            table_name=table_name_for(name, merged),
        )
        logger.debug(
            f"Built model {name} -> table {model.table_name} "
            f"({len(schema)} fields, strict={strict}, timestamps={model.timestamps})"
        )
        return model

    @property
    def timestamps(self) -> bool:
        return bool(self.options.get("timestamps"))

    @property
    def strict(self) -> bool:
        return self.options.get("strict", True) is not False

    @property
    def unique_fields(self) -> list[str]:
        return self._top_level_scalars_with("unique")

    @property
    def indexed_fields(self) -> list[str]:
        unique = set(self.unique_fields)
        return [name for name in self._top_level_scalars_with("index") if name not in unique]

    def _top_level_scalars_with(self, constraint: str) -> list[str]:
        return [
            name
            for name, descriptor in self.schema.items()
            if isinstance(descriptor, ScalarField) and descriptor.constraints.get(constraint)
        ]

    def validate_document(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Validate a request body and return the JSON-ready document to store.

        Raises:
            pydantic.ValidationError: body violates the entity schema
        """
        body = {key: value for key, value in data.items() if key not in SYSTEM_FIELDS}
        document = self.document_class.model_validate(body)
        return document.model_dump(mode="json", by_alias=True, exclude_none=True)
