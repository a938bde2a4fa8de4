"""
Exception types raised by the loader and persistence layers.

HTTP handlers translate these (and pydantic's ValidationError) into
status codes; the CLI turns them into click.Abort.
"""


class ConfigError(ValueError):
    """Remote config is missing, malformed, or an entity definition is unusable."""


class DatabaseNotConnectedError(RuntimeError):
    """No live PostgreSQL pool and no way to create one."""


class DuplicateKeyError(ValueError):
    """A document violates a unique index declared in the entity schema."""


class UnsupportedFilterError(ValueError):
    """Export filter uses an operator the SQL builder cannot translate."""
