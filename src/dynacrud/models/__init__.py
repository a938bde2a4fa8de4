"""Runtime-materialized entity models."""

from .document import DynamicModel, build_document_model, table_name_for

__all__ = ["DynamicModel", "build_document_model", "table_name_for"]
