"""
Type resolution for config field definitions.

Maps the lower-cased type names used in the remote config onto a closed
set of storage types. Unknown names fail open to MIXED: the config source
is outside our control, so a typo degrades validation instead of taking
an entity offline.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Union
from uuid import UUID


class StorageType(str, Enum):
    """Concrete storage type of a scalar field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT_ID = "objectid"
    ARRAY = "array"
    MIXED = "mixed"

    @property
    def python_type(self) -> Any:
        """Python annotation used when validating documents."""
        return _PYTHON_TYPES[self]


_PYTHON_TYPES: dict[StorageType, Any] = {
    StorageType.STRING: str,
    # int first so whole numbers keep their JSON representation
    StorageType.NUMBER: Union[int, float],
    StorageType.BOOLEAN: bool,
    StorageType.DATE: datetime,
    StorageType.OBJECT_ID: UUID,
    StorageType.ARRAY: list[Any],
    StorageType.MIXED: Any,
}

_TYPE_NAMES = {member.value: member for member in StorageType}


def resolve_type(type_name: Any) -> StorageType:
    """
    Resolve a config type name to a StorageType.

    Matching is case-insensitive. Anything unrecognised, including None and
    non-string values, resolves to StorageType.MIXED.

    Example:
        >>> resolve_type("String")
        <StorageType.STRING: 'string'>
        >>> resolve_type("bogus")
        <StorageType.MIXED: 'mixed'>
    """
    if not isinstance(type_name, str):
        return StorageType.MIXED
    return _TYPE_NAMES.get(type_name.strip().lower(), StorageType.MIXED)
