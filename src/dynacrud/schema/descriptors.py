"""
Normalized schema descriptors.

The compiled, engine-ready form of an entity's field map. Descriptors are
frozen dataclasses so two compilations of the same config compare equal,
which is what makes re-registration safe to reason about.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from .types import StorageType


@dataclass(frozen=True)
class ScalarField:
    type: StorageType
    constraints: dict[str, Any] = field(default_factory=dict)

    @property
    def required(self) -> bool:
        return bool(self.constraints.get("required"))


@dataclass(frozen=True)
class ArrayField:
    item: "Descriptor"
    constraints: dict[str, Any] = field(default_factory=dict)

    @property
    def required(self) -> bool:
        return bool(self.constraints.get("required"))


@dataclass(frozen=True)
class EmbeddedField:
    fields: dict[str, "Descriptor"]
    constraints: dict[str, Any] = field(default_factory=dict)

    @property
    def required(self) -> bool:
        """Explicitly required, or containing a required field."""
        if self.constraints.get("required"):
            return True
        return any(child.required for child in self.fields.values())


Descriptor = Union[ScalarField, ArrayField, EmbeddedField]

NormalizedSchema = dict[str, Descriptor]
