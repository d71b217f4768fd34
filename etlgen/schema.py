"""Schema model: tables and columns of one connection, plus lookup helpers.

A DatabaseSchema is an immutable snapshot. It is built either from a metadata
payload handed over by the schema service (``schema_from_payload``) or
directly from a DB-API 2.0 connection through information_schema
(``discover_schema``). Lookups are deliberately fuzzy because table and column
names in mapping sheets are typed by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from etlgen.dialects import split_name, strip_identifier
from etlgen.errors import SchemaFetchError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Type families
# ---------------------------------------------------------------------------

NUMERIC_TYPES: set[str] = {
    "int", "integer", "bigint", "smallint", "tinyint", "float", "double",
    "decimal", "numeric", "real", "number", "money", "smallmoney", "hugeint",
    "double precision", "float4", "float8", "int2", "int4", "int8",
}

STRING_TYPES: set[str] = {
    "varchar", "char", "text", "string", "nvarchar", "nchar", "ntext",
    "character varying", "character", "clob", "varchar2", "nvarchar2",
}

TEMPORAL_TYPES: set[str] = {
    "timestamp", "datetime", "datetime2", "smalldatetime", "date", "time",
    "timestamptz", "timestamp_tz", "timestamp_ltz", "timestamp_ntz",
    "timestamp with time zone", "timestamp without time zone", "datetimeoffset",
}


def _base_type(data_type: str) -> str:
    return data_type.lower().split("(")[0].strip()


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnInfo:
    name: str
    data_type: str
    is_nullable: bool = True
    max_length: int | None = None

    @property
    def is_numeric(self) -> bool:
        return _base_type(self.data_type) in NUMERIC_TYPES

    @property
    def is_string(self) -> bool:
        return _base_type(self.data_type) in STRING_TYPES

    @property
    def is_temporal(self) -> bool:
        return _base_type(self.data_type) in TEMPORAL_TYPES


@dataclass(frozen=True)
class TableInfo:
    schema: str
    table_name: str
    columns: tuple[ColumnInfo, ...] = ()
    primary_key: tuple[str, ...] | None = None

    @property
    def full_name(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.table_name}"
        return self.table_name


@dataclass(frozen=True)
class DatabaseSchema:
    tables: tuple[TableInfo, ...] = ()

    @property
    def total_tables(self) -> int:
        return len(self.tables)

    @property
    def total_columns(self) -> int:
        return sum(len(t.columns) for t in self.tables)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def _clean_name(name: str) -> str:
    return ".".join(strip_identifier(p) for p in split_name(name.strip())).lower()


def find_table(schema: DatabaseSchema | None, name: str | None) -> TableInfo | None:
    """Find a table by fuzzy name.

    Tries, in order: exact case-insensitive match on the full or bare name,
    substring containment in either direction against the bare name, and
    finally the trailing segment of a dotted query against bare names.
    """
    if schema is None or not name:
        return None
    query = _clean_name(name)
    if not query:
        return None

    for table in schema.tables:
        if table.full_name.lower() == query or table.table_name.lower() == query:
            return table

    for table in schema.tables:
        bare = table.table_name.lower()
        if bare and (query in bare or bare in query):
            return table

    if "." in query:
        last = query.rsplit(".", 1)[-1]
        for table in schema.tables:
            if table.table_name.lower() == last:
                return table

    return None


def find_column(table: TableInfo | None, name: str | None) -> ColumnInfo | None:
    """Find a column by exact then substring match, ignoring quote decoration."""
    if table is None or not name:
        return None
    query = strip_identifier(name).lower()
    if not query:
        return None

    for col in table.columns:
        if col.name.lower() == query:
            return col

    for col in table.columns:
        lower = col.name.lower()
        if query in lower or lower in query:
            return col

    return None


# ---------------------------------------------------------------------------
# Payload normalization
# ---------------------------------------------------------------------------

def schema_from_payload(payload: Any) -> DatabaseSchema:
    """Build a DatabaseSchema from a metadata payload.

    Accepts a flat ``{"tables": [...]}`` payload (camelCase or snake_case
    keys), the same wrapped in a ``{"success": ..., "data": ...}`` envelope,
    or the nested ``{"databases": [{"schemas": [{"tables": [...]}]}]}`` shape
    reported by remote metadata agents.

    Raises:
        SchemaFetchError: If no table list can be recognized.
    """
    if isinstance(payload, DatabaseSchema):
        return payload
    if not isinstance(payload, dict):
        raise SchemaFetchError(f"Schema payload must be an object, got {type(payload).__name__}")

    if payload.get("success") is False:
        raise SchemaFetchError(str(payload.get("error") or "Schema service reported failure"))
    if isinstance(payload.get("data"), dict):
        payload = payload["data"]

    tables: list[TableInfo] = []
    if isinstance(payload.get("tables"), list):
        for raw in payload["tables"]:
            table = _table_from_dict(raw)
            if table is not None:
                tables.append(table)
    elif isinstance(payload.get("databases"), list):
        for database in payload["databases"]:
            if not isinstance(database, dict):
                continue
            for schema in database.get("schemas") or []:
                if not isinstance(schema, dict):
                    continue
                for raw in schema.get("tables") or []:
                    table = _table_from_dict(raw, default_schema=str(schema.get("name") or ""))
                    if table is not None:
                        tables.append(table)
    else:
        raise SchemaFetchError("Schema payload has no recognizable table list")

    return DatabaseSchema(tables=tuple(tables))


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().upper() in ("YES", "Y", "TRUE", "1")


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _table_from_dict(raw: Any, default_schema: str = "") -> TableInfo | None:
    if not isinstance(raw, dict):
        return None
    name = _first(raw, "tableName", "table_name", "name")
    schema = _first(raw, "schema", "schemaName", "schema_name") or default_schema
    if name is None:
        full = _first(raw, "fullName", "full_name")
        if full is None:
            return None
        parts = str(full).split(".")
        name = parts[-1]
        schema = schema or (parts[-2] if len(parts) > 1 else "")

    columns: list[ColumnInfo] = []
    flagged_pk: list[str] = []
    for col in raw.get("columns") or []:
        if not isinstance(col, dict):
            continue
        col_name = _first(col, "name", "columnName", "column_name")
        if col_name is None:
            continue
        columns.append(ColumnInfo(
            name=str(col_name),
            data_type=str(_first(col, "dataType", "data_type", "type") or "unknown"),
            is_nullable=_as_bool(_first(col, "isNullable", "is_nullable", "nullable")),
            max_length=_as_int(_first(col, "maxLength", "max_length", "characterMaximumLength")),
        ))
        if _as_bool(_first(col, "isPrimaryKey", "is_primary_key"), default=False):
            flagged_pk.append(str(col_name))

    declared_pk = _first(raw, "primaryKey", "primary_key")
    if isinstance(declared_pk, str):
        declared_pk = [declared_pk]
    primary_key = tuple(str(c) for c in declared_pk) if declared_pk else tuple(flagged_pk)

    return TableInfo(
        schema=str(schema),
        table_name=str(name),
        columns=tuple(columns),
        primary_key=primary_key or None,
    )


def schema_to_payload(schema: DatabaseSchema) -> dict[str, Any]:
    """Inverse of the flat payload shape, for writing schema snapshots to disk."""
    return {
        "tables": [
            {
                "schema": t.schema,
                "tableName": t.table_name,
                "columns": [
                    {
                        "name": c.name,
                        "dataType": c.data_type,
                        "isNullable": c.is_nullable,
                        "maxLength": c.max_length,
                    }
                    for c in t.columns
                ],
                "primaryKey": list(t.primary_key or []),
            }
            for t in schema.tables
        ]
    }


# ---------------------------------------------------------------------------
# Discovery (DB-API 2.0 + information_schema)
# ---------------------------------------------------------------------------

_COLUMNS_SQL = """
    SELECT table_schema, table_name, column_name, data_type, is_nullable, character_maximum_length
    FROM information_schema.columns
    WHERE LOWER(table_schema) NOT IN ('information_schema', 'pg_catalog', 'sys')
    ORDER BY table_schema, table_name, ordinal_position
"""

_PRIMARY_KEYS_SQL = """
    SELECT kcu.table_schema, kcu.table_name, kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON tc.constraint_name = kcu.constraint_name
       AND tc.table_schema = kcu.table_schema
       AND tc.table_name = kcu.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
    ORDER BY kcu.table_schema, kcu.table_name, kcu.ordinal_position
"""


def discover_schema(conn: Any, schemas: list[str] | None = None) -> DatabaseSchema:
    """Discover tables and columns through information_schema.

    Args:
        conn: A DB-API 2.0 connection.
        schemas: Optional list of schemas to keep (case-insensitive).

    Returns:
        A DatabaseSchema snapshot. Primary keys are filled in where the
        engine exposes key_column_usage.
    """
    wanted = {s.lower() for s in schemas} if schemas else None
    cursor = conn.cursor()
    try:
        cursor.execute(_COLUMNS_SQL)
        rows = cursor.fetchall()

        ordered: dict[tuple[str, str], list[ColumnInfo]] = {}
        for row in rows:
            schema_name, table_name = row[0] or "", row[1]
            if wanted is not None and schema_name.lower() not in wanted:
                continue
            ordered.setdefault((schema_name, table_name), []).append(ColumnInfo(
                name=row[2],
                data_type=row[3] or "unknown",
                is_nullable=str(row[4]).upper() == "YES",
                max_length=_as_int(row[5]),
            ))

        keys: dict[tuple[str, str], list[str]] = {}
        try:
            cursor.execute(_PRIMARY_KEYS_SQL)
            for row in cursor.fetchall():
                keys.setdefault((row[0] or "", row[1]), []).append(row[2])
        except Exception as e:
            logger.debug(f"Primary key metadata not available: {e}")
    finally:
        cursor.close()

    tables = tuple(
        TableInfo(
            schema=schema_name,
            table_name=table_name,
            columns=tuple(columns),
            primary_key=tuple(keys[(schema_name, table_name)]) if (schema_name, table_name) in keys else None,
        )
        for (schema_name, table_name), columns in ordered.items()
    )
    logger.info(f"Discovered {len(tables)} tables, {sum(len(t.columns) for t in tables)} columns")
    return DatabaseSchema(tables=tables)
