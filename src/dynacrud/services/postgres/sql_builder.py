"""
SQL builders for entity document tables.

Every entity table has the same shape:

    id          UUID primary key (gen_random_uuid())
    data        JSONB document
    created_at  TIMESTAMPTZ
    updated_at  TIMESTAMPTZ

Builders return (sql, params) tuples with positional $n parameters. Table
names are validated identifiers (see models.document.table_name_for) and
are quoted; field paths and values always travel as parameters.

Filters use a Mongo-style subset so the export endpoint accepts the same
filter documents existing export clients send:

    {"status": "active"}                      containment match
    {"price": {"$gte": 10, "$lt": 100}}       jsonb comparisons
    {"address.city": {"$in": ["Oslo", "Rome"]}}
    {"$or": [{"a": 1}, {"b": 2}]}
"""

from datetime import datetime
from typing import Any

from ...exceptions import UnsupportedFilterError

# Filter/sort keys that address table columns instead of the JSONB document
COLUMN_FIELDS = {
    "id": "id",
    "_id": "id",
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
}

COMPARISON_OPERATORS = {
    "$eq": "=",
    "$gt": ">",
    "$gte": ">=",
    "$lt": "<",
    "$lte": "<=",
}

DESCENDING = {-1, "-1", "desc", "descending"}
ASCENDING = {1, "1", "asc", "ascending"}


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_create_table(table_name: str) -> str:
    table = quote_identifier(table_name)
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            data JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """


def build_field_index(table_name: str, field_name: str, unique: bool = False) -> str:
    """Expression index on a top-level document field."""
    suffix = "key" if unique else "idx"
    slug = "".join(ch if ch.isalnum() else "_" for ch in field_name.lower())
    index_name = f"{table_name}_{slug}_{suffix}"[:63]
    kind = "UNIQUE INDEX" if unique else "INDEX"
    return (
        f"CREATE {kind} IF NOT EXISTS {quote_identifier(index_name)} "
        f"ON {quote_identifier(table_name)} ((data ->> {_quote_literal(field_name)}))"
    )


def build_insert(table_name: str, document: dict[str, Any]) -> tuple[str, list[Any]]:
    sql = f"INSERT INTO {quote_identifier(table_name)} (data) VALUES ($1) RETURNING *"
    return sql, [document]


def build_select_by_id(table_name: str, record_id: Any) -> tuple[str, list[Any]]:
    sql = f"SELECT * FROM {quote_identifier(table_name)} WHERE id = $1"
    return sql, [record_id]


def build_update(table_name: str, record_id: Any, document: dict[str, Any]) -> tuple[str, list[Any]]:
    sql = (
        f"UPDATE {quote_identifier(table_name)} "
        f"SET data = $2, updated_at = now() WHERE id = $1 RETURNING *"
    )
    return sql, [record_id, document]


def build_delete(table_name: str, record_id: Any) -> tuple[str, list[Any]]:
    sql = f"DELETE FROM {quote_identifier(table_name)} WHERE id = $1 RETURNING *"
    return sql, [record_id]


def build_select(
    table_name: str,
    filters: dict[str, Any] | None = None,
    sort: dict[str, Any] | str | None = None,
    limit: int | None = None,
) -> tuple[str, list[Any]]:
    """
    SELECT with optional Mongo-style filter, sort and limit.

    Without a sort, rows come back in insertion order (created_at, id).
    A limit of 0 (or None) means no limit.
    """
    params: list[Any] = []
    where = build_where(filters or {}, params)
    order_by = build_order_by(sort, params) if sort else ""
    if not order_by:
        order_by = "created_at ASC, id ASC"

    sql = f"SELECT * FROM {quote_identifier(table_name)} WHERE {where} ORDER BY {order_by}"
    if limit:
        params.append(limit)
        sql += f" LIMIT ${len(params)}"
    return sql, params


def _param(params: list[Any], value: Any) -> str:
    params.append(value)
    return f"${len(params)}"


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def _column_target(column: str) -> tuple[str, str, Any]:
    """(expression, param cast, value converter) for a column filter."""
    if column == "id":
        return "id::text", "::text", str
    return column, "::timestamptz", _parse_timestamp


def _nest(path: list[str], value: Any) -> dict[str, Any]:
    nested: Any = value
    for part in reversed(path):
        nested = {part: nested}
    return nested


def _is_operator_block(condition: Any) -> bool:
    return isinstance(condition, dict) and bool(condition) and all(
        str(key).startswith("$") for key in condition
    )


def build_where(filters: dict[str, Any], params: list[Any]) -> str:
    """
    Translate a filter document into a WHERE clause, appending parameters.

    Raises:
        UnsupportedFilterError: unknown top-level or field operator
    """
    if not isinstance(filters, dict):
        raise UnsupportedFilterError("Filter must be an object")

    clauses: list[str] = []
    for key, condition in filters.items():
        if key in ("$and", "$or"):
            if not isinstance(condition, list) or not condition:
                raise UnsupportedFilterError(f"{key} expects a non-empty list of filters")
            joiner = " AND " if key == "$and" else " OR "
            parts = [f"({build_where(sub, params)})" for sub in condition]
            clauses.append("(" + joiner.join(parts) + ")")
        elif key.startswith("$"):
            raise UnsupportedFilterError(f"Unsupported filter operator: {key}")
        elif key in COLUMN_FIELDS:
            clauses.extend(_column_clauses(COLUMN_FIELDS[key], condition, params))
        else:
            clauses.extend(_document_clauses(key.split("."), condition, params))

    return " AND ".join(clauses) if clauses else "TRUE"


def _column_clauses(column: str, condition: Any, params: list[Any]) -> list[str]:
    expression, cast, convert = _column_target(column)

    if not _is_operator_block(condition):
        return [f"{expression} = {_param(params, convert(condition))}{cast}"]

    clauses = []
    for operator, value in condition.items():
        if operator in COMPARISON_OPERATORS:
            placeholder = _param(params, convert(value))
            clauses.append(f"{expression} {COMPARISON_OPERATORS[operator]} {placeholder}{cast}")
        elif operator == "$ne":
            clauses.append(f"{expression} IS DISTINCT FROM {_param(params, convert(value))}{cast}")
        elif operator in ("$in", "$nin"):
            values = [convert(item) for item in _as_list(operator, value)]
            match = f"{expression} = ANY({_param(params, values)}{cast}[])"
            clauses.append(match if operator == "$in" else f"NOT ({match})")
        elif operator == "$exists":
            clauses.append("TRUE" if value else "FALSE")
        else:
            raise UnsupportedFilterError(f"Unsupported operator {operator} for {column}")
    return clauses


def _document_clauses(path: list[str], condition: Any, params: list[Any]) -> list[str]:
    if not _is_operator_block(condition):
        return [f"data @> {_param(params, _nest(path, condition))}::jsonb"]

    target = f"(data #> {_param(params, path)}::text[])"
    clauses = []
    for operator, value in condition.items():
        if operator in COMPARISON_OPERATORS:
            placeholder = _param(params, value)
            clauses.append(f"{target} {COMPARISON_OPERATORS[operator]} {placeholder}::jsonb")
        elif operator == "$ne":
            clauses.append(f"{target} IS DISTINCT FROM {_param(params, value)}::jsonb")
        elif operator == "$in":
            clauses.append(f"{target} = ANY({_param(params, _as_list(operator, value))}::jsonb[])")
        elif operator == "$nin":
            placeholder = _param(params, _as_list(operator, value))
            clauses.append(f"({target} IS NULL OR NOT ({target} = ANY({placeholder}::jsonb[])))")
        elif operator == "$exists":
            clauses.append(f"{target} IS NOT NULL" if value else f"{target} IS NULL")
        elif operator == "$regex":
            case_insensitive = "i" in str(condition.get("$options", ""))
            regex_operator = "~*" if case_insensitive else "~"
            text_target = f"(data #>> {_param(params, path)}::text[])"
            clauses.append(f"{text_target} {regex_operator} {_param(params, str(value))}")
        elif operator == "$options":
            continue
        else:
            raise UnsupportedFilterError(f"Unsupported operator {operator} for {'.'.join(path)}")
    return clauses


def _as_list(operator: str, value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise UnsupportedFilterError(f"{operator} expects a list")
    return value


def _sort_items(sort: dict[str, Any] | str) -> list[tuple[str, bool]]:
    """[(field, descending)] from {"a": 1, "b": -1} or "a -b"."""
    if isinstance(sort, str):
        items = []
        for token in sort.replace(",", " ").split():
            if token.startswith("-"):
                items.append((token[1:], True))
            else:
                items.append((token.lstrip("+"), False))
        return items

    if isinstance(sort, dict):
        items = []
        for field_name, direction in sort.items():
            normalized = direction.lower() if isinstance(direction, str) else direction
            if normalized in DESCENDING:
                items.append((field_name, True))
            elif normalized in ASCENDING:
                items.append((field_name, False))
            else:
                raise UnsupportedFilterError(f"Invalid sort direction for {field_name}: {direction!r}")
        return items

    raise UnsupportedFilterError("Sort must be an object or a string")


def build_order_by(sort: dict[str, Any] | str, params: list[Any]) -> str:
    parts = []
    for field_name, descending in _sort_items(sort):
        if field_name in COLUMN_FIELDS:
            expression = COLUMN_FIELDS[field_name]
        else:
            expression = f"(data #> {_param(params, field_name.split('.'))}::text[])"
        parts.append(f"{expression} {'DESC' if descending else 'ASC'}")
    return ", ".join(parts)
