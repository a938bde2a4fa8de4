"""
CSV export helpers for entity documents.

Documents are flattened into dot-path keys, projected onto a header set and
written as RFC 4180 CSV: a cell is quoted only when it holds a comma, a
quote or a line break, and every line ends with CRLF.
The rendered export starts with a UTF-8 byte-order mark so spreadsheet
applications pick the right encoding.

Cell formatting:
- None -> empty cell
- list -> items joined with "; "
- datetime -> UTC timestamp, e.g. 2024-05-01T09:30:00.000Z
- dict -> JSON
- bool -> true / false
"""

import json
from datetime import date, datetime, timezone
from typing import Any, Iterable

BOM = "\ufeff"
LIST_SEPARATOR = "; "
LINE_TERMINATOR = "\r\n"


def flatten_document(document: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested objects into dot-path keys.

    Lists and datetimes are leaves; an empty nested object contributes no keys.

    Example:
        >>> flatten_document({"a": {"b": 1}, "c": [1, 2]})
        {'a.b': 1, 'c': [1, 2]}
    """
    flat: dict[str, Any] = {}
    for key, value in (document or {}).items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_document(value, path))
        else:
            flat[path] = value
    return flat


def format_timestamp(value: datetime) -> str:
    """2024-05-01T09:30:00.000Z form; naive values are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return LIST_SEPARATOR.join(_format_list_item(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def _format_list_item(item: Any) -> str:
    if isinstance(item, (list, tuple)):
        return ",".join(_format_list_item(inner) for inner in item)
    return format_cell(item)


def select_headers(rows: Iterable[dict[str, Any]], fields: list[str] | None = None) -> list[str]:
    """Explicit field list when given, otherwise the sorted union of all keys."""
    if fields:
        return list(fields)
    keys: set[str] = set()
    for row in rows:
        keys.update(row.keys())
    return sorted(keys)


def project(row: dict[str, Any], headers: list[str]) -> dict[str, Any]:
    return {header: row.get(header, "") for header in headers}


def escape_cell(value: str) -> str:
    """Quote a cell only when it holds a comma, quote or line break (RFC 4180)."""
    if any(ch in value for ch in ',"\r\n'):
        return '"' + value.replace('"', '""') + '"'
    return value


def to_csv(rows: Iterable[dict[str, Any]], headers: list[str]) -> str:
    """One header row, then one line per row, each terminated by CRLF."""
    lines = [",".join(escape_cell(header) for header in headers)]
    for row in rows:
        lines.append(",".join(escape_cell(format_cell(row.get(header))) for header in headers))
    return "".join(line + LINE_TERMINATOR for line in lines)


def render_export(documents: list[dict[str, Any]], fields: list[str] | None = None) -> str:
    """Full export body: BOM + CSV of the flattened documents."""
    flat_documents = [flatten_document(document) for document in documents]
    headers = select_headers(flat_documents, fields)
    rows = [project(document, headers) for document in flat_documents]
    return BOM + to_csv(rows, headers)
