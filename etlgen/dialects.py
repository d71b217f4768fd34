"""Dialect registry: centralizes all engine-specific SQL knowledge.

Each supported SQL engine is defined as a Dialect dataclass and registered in a
central registry. Generators never branch on engine names; they ask the
dialect for quoting, length/limit syntax, checksum expressions and catalog
queries.

Built-in dialects:

    mssql        [brackets]      aliases: azuresql, sqlserver, tsql
    mysql        `backticks`
    mariadb      `backticks`
    postgresql   "double quotes" aliases: postgres, pg
    redshift     "double quotes"
    snowflake    "double quotes"
    databricks   "double quotes" aliases: spark, spark_sql
    sqlite       "double quotes"
    oracle       "double quotes"

Unknown tags fall back to mssql.

External code can call register_dialect() to add an engine without modifying
this module.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_DIALECT = "mssql"


# ---------------------------------------------------------------------------
# Dialect definition
# ---------------------------------------------------------------------------

@dataclass
class Dialect:
    """Complete definition of a SQL engine's syntax conventions.

    Checksum templates receive ``{cols}`` (comma-joined quoted columns) and
    ``{concat}`` (the dialect's text concatenation of those columns).
    """
    name: str                                   # "mssql", "postgresql", ...
    aliases: list[str] = field(default_factory=list)
    quote_open: str = '"'                       # Opening identifier quote
    quote_close: str = '"'                      # Closing identifier quote
    cast_float: str = "FLOAT"                   # Type name for CAST to float
    cast_string: str = "VARCHAR(4000)"          # Type name for CAST to text
    length_fn: str = "LENGTH"                   # Character length function
    limit_style: str = "limit"                  # "top", "limit" or "fetch"
    concat_style: str = "pipes"                 # "plus", "pipes" or "concat"
    string_agg: str = "STRING_AGG({expr}, ',')"
    catalog_style: str = "information_schema"   # "information_schema", "oracle", "sqlite"
    checksum_template: str = "SUM(LENGTH({concat}))"
    checksum_needs_columns: bool = True         # False when the template accepts *
    index_query: str = (
        "SELECT CONSTRAINT_NAME, CONSTRAINT_TYPE FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS "
        "WHERE TABLE_SCHEMA = {schema} AND TABLE_NAME = {table}"
    )
    non_comparable_casts: dict[str, str] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Identifier quoting
    # ------------------------------------------------------------------

    def quote(self, name: str) -> str:
        """Quote a single identifier, doubling any closing quote inside it."""
        if not name:
            return ""
        escaped = name.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def quote_name(self, name: str) -> str:
        """Quote a dotted multi-part name segment by segment.

        Segments that are already quoted are stripped first, so
        ``[dbo].Customer`` and ``dbo.Customer`` quote identically.
        """
        if not name:
            return ""
        parts = [strip_identifier(p) for p in split_name(name)]
        return ".".join(self.quote(p) for p in parts if p)

    def q(self, *parts: str) -> str:
        """Quote and join identifier parts: q('schema', 'table') -> '[schema].[table]'."""
        return ".".join(self.quote(p) for p in parts if p)

    # ------------------------------------------------------------------
    # Expression helpers
    # ------------------------------------------------------------------

    def concat(self, *parts: str) -> str:
        """Text concatenation of SQL expressions."""
        if self.concat_style == "plus":
            return " + ".join(parts)
        if self.concat_style == "concat":
            return f"CONCAT({', '.join(parts)})"
        return " || ".join(parts)

    def limit(self, select_body: str, n: int) -> str:
        """Apply a row limit to ``select_body`` (the text after SELECT)."""
        if self.limit_style == "top":
            return f"SELECT TOP {n} {select_body}"
        if self.limit_style == "fetch":
            return f"SELECT {select_body}\nFETCH FIRST {n} ROWS ONLY"
        return f"SELECT {select_body}\nLIMIT {n}"

    def checksum(self, columns: list[str]) -> str | None:
        """Dataset checksum over already-quoted column expressions.

        Returns None when the dialect needs an explicit column list and none
        is known; callers then compare counts only.
        """
        if not columns:
            if self.checksum_needs_columns:
                return None
            return self.checksum_template.format(cols="*", concat="*")
        if self.concat_style == "concat":
            concat = f"CONCAT_WS('|', {', '.join(columns)})"
        else:
            sep = " + '|' + " if self.concat_style == "plus" else " || '|' || "
            concat = sep.join(f"COALESCE(CAST({c} AS {self.cast_string}), '')" for c in columns)
        return self.checksum_template.format(cols=", ".join(columns), concat=concat)

    def comparable(self, column: str, data_type: str) -> str:
        """Wrap a quoted column in a cast when its type cannot be hashed natively."""
        target = self.non_comparable_casts.get(data_type.lower().split("(")[0].strip())
        if target:
            return f"CAST({column} AS {target})"
        return column

    def columns_query(self, schema: str, table: str, select: str = "COLUMN_NAME, DATA_TYPE",
                      where: str = "", order_by: str = "ORDINAL_POSITION") -> str:
        """Metadata query over the dialect's column catalog.

        ``select``, ``where`` and ``order_by`` are written against
        INFORMATION_SCHEMA.COLUMNS names and translated for other catalogs.
        An empty ``schema`` filters on the table name only.
        """
        names = _CATALOG_NAMES.get(self.catalog_style, {})
        if self.catalog_style == "oracle":
            source = "ALL_TAB_COLUMNS"
            filters = [f"TABLE_NAME = {quote_literal(table.upper())}"]
            if schema:
                filters.insert(0, f"OWNER = {quote_literal(schema.upper())}")
        elif self.catalog_style == "sqlite":
            source = f"pragma_table_info({quote_literal(table)})"
            filters = []
        else:
            source = "INFORMATION_SCHEMA.COLUMNS"
            filters = [f"TABLE_NAME = {quote_literal(table)}"]
            if schema:
                filters.insert(0, f"TABLE_SCHEMA = {quote_literal(schema)}")
        if where:
            filters.append(_map_expr(where, names))

        sql = f"SELECT {_map_select(select, names)}\nFROM {source}"
        if filters:
            sql += "\nWHERE " + "\nAND ".join(filters)
        if order_by:
            sql += f"\nORDER BY {_map_expr(order_by, names)}"
        return sql

    def table_exists_query(self, schema: str, table: str) -> str:
        """Query returning 1 when the table exists, 0 otherwise (as TableCount)."""
        if self.catalog_style == "oracle":
            return (
                f"SELECT COUNT(*) AS TableCount FROM ALL_TABLES "
                f"WHERE OWNER = {quote_literal(schema.upper())} AND TABLE_NAME = {quote_literal(table.upper())}"
            )
        if self.catalog_style == "sqlite":
            return (
                f"SELECT COUNT(*) AS TableCount FROM sqlite_master "
                f"WHERE type = 'table' AND name = {quote_literal(table)}"
            )
        return (
            f"SELECT COUNT(*) AS TableCount FROM INFORMATION_SCHEMA.TABLES "
            f"WHERE TABLE_SCHEMA = {quote_literal(schema)} AND TABLE_NAME = {quote_literal(table)}"
        )

    def indexes_query(self, schema: str, table: str) -> str:
        return self.index_query.format(schema=quote_literal(schema), table=quote_literal(table),
                                       qualified=quote_literal(f"{schema}.{table}"))


# INFORMATION_SCHEMA.COLUMNS names -> catalog-specific expressions
_CATALOG_NAMES: dict[str, dict[str, str]] = {
    "oracle": {
        "TABLE_SCHEMA": "OWNER",
        "CHARACTER_MAXIMUM_LENGTH": "CHAR_LENGTH",
        "NUMERIC_PRECISION": "DATA_PRECISION",
        "NUMERIC_SCALE": "DATA_SCALE",
        "ORDINAL_POSITION": "COLUMN_ID",
    },
    "sqlite": {
        "COLUMN_NAME": "name",
        "DATA_TYPE": "type",
        "ORDINAL_POSITION": "cid",
        "TABLE_NAME": "NULL",
        "TABLE_SCHEMA": "NULL",
        "CHARACTER_MAXIMUM_LENGTH": "NULL",
        "NUMERIC_PRECISION": "NULL",
        "NUMERIC_SCALE": "NULL",
    },
}


def _map_expr(expr: str, names: dict[str, str]) -> str:
    if not names:
        return expr
    pattern = re.compile(r"\b(" + "|".join(names) + r")\b")
    return pattern.sub(lambda m: names[m.group(1)], expr)


def _split_select(select: str) -> list[str]:
    """Split a select list on top-level commas."""
    parts, depth, current = [], 0, []
    for ch in select:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def _map_select(select: str, names: dict[str, str]) -> str:
    """Translate a select list, keeping the standard names as column aliases."""
    if not names:
        return select
    mapped = []
    for part in _split_select(select):
        if part in names:
            mapped.append(f"{names[part]} AS {part}")
        else:
            mapped.append(_map_expr(part, names))
    return ", ".join(mapped)


# ---------------------------------------------------------------------------
# Identifier helpers (dialect independent)
# ---------------------------------------------------------------------------

_QUOTE_PAIRS = {"[": "]", '"': '"', "`": "`"}


def strip_identifier(text: str) -> str:
    """Remove one layer of identifier quoting, undoing doubled closing quotes.

    Works for any of the three quote styles, so it also strips decoration
    from user-typed names like ``[Name]``.
    """
    if not text:
        return ""
    value = text.strip()
    if len(value) >= 2 and value[0] in _QUOTE_PAIRS and value[-1] == _QUOTE_PAIRS[value[0]]:
        close = _QUOTE_PAIRS[value[0]]
        return value[1:-1].replace(close * 2, close)
    return value


def split_name(name: str) -> list[str]:
    """Split a dotted name on dots that are outside quotes."""
    parts: list[str] = []
    current: list[str] = []
    closing: str | None = None
    for ch in name:
        if closing:
            current.append(ch)
            if ch == closing:
                closing = None
        elif ch in _QUOTE_PAIRS:
            closing = _QUOTE_PAIRS[ch]
            current.append(ch)
        elif ch == ".":
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return parts


def quote_literal(value: str) -> str:
    """Single-quoted SQL string literal."""
    return "'" + str(value).replace("'", "''") + "'"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_DIALECTS: dict[str, Dialect] = {}
_ALIAS_INDEX: dict[str, str] = {}  # alias -> dialect name


def register_dialect(dialect: Dialect) -> None:
    """Register a dialect. Both built-in and external dialects use this."""
    _DIALECTS[dialect.name] = dialect
    _ALIAS_INDEX[dialect.name.lower()] = dialect.name
    for alias in dialect.aliases:
        _ALIAS_INDEX[alias.lower()] = dialect.name


def get_dialect(tag: str | Dialect | None) -> Dialect:
    """Resolve a dialect tag. Unknown or missing tags resolve to mssql."""
    if isinstance(tag, Dialect):
        return tag
    _ensure_builtins()
    key = (tag or "").strip().lower()
    name = _ALIAS_INDEX.get(key)
    if name is None:
        if key:
            logger.debug(f"Unknown dialect '{tag}', falling back to {DEFAULT_DIALECT}")
        name = DEFAULT_DIALECT
    return _DIALECTS[name]


def list_dialects() -> list[str]:
    """List all registered dialect names."""
    _ensure_builtins()
    return list(_DIALECTS.keys())


# ---------------------------------------------------------------------------
# Built-in dialect registration (lazy, called once)
# ---------------------------------------------------------------------------

_BUILTINS_REGISTERED = False

_INFO_SCHEMA_CONSTRAINTS = (
    "SELECT CONSTRAINT_NAME, CONSTRAINT_TYPE FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS "
    "WHERE TABLE_SCHEMA = {schema} AND TABLE_NAME = {table}"
)


def _ensure_builtins() -> None:
    """Register all built-in dialects on first access."""
    global _BUILTINS_REGISTERED
    if _BUILTINS_REGISTERED:
        return
    _BUILTINS_REGISTERED = True

    register_dialect(Dialect(
        name="mssql",
        aliases=["azuresql", "sqlserver", "tsql"],
        quote_open="[",
        quote_close="]",
        cast_string="NVARCHAR(4000)",
        length_fn="LEN",
        limit_style="top",
        concat_style="plus",
        string_agg="STRING_AGG({expr}, ',')",
        checksum_template="CHECKSUM_AGG(CHECKSUM({cols}))",
        checksum_needs_columns=False,
        index_query="SELECT name, type_desc FROM sys.indexes WHERE object_id = OBJECT_ID({qualified})",
        non_comparable_casts={
            "xml": "NVARCHAR(MAX)",
            "ntext": "NVARCHAR(MAX)",
            "text": "VARCHAR(MAX)",
            "image": "VARBINARY(MAX)",
            "geography": "VARBINARY(MAX)",
            "geometry": "VARBINARY(MAX)",
        },
    ))

    for name in ("mysql", "mariadb"):
        register_dialect(Dialect(
            name=name,
            quote_open="`",
            quote_close="`",
            cast_float="DOUBLE",
            cast_string="CHAR",
            length_fn="CHAR_LENGTH",
            concat_style="concat",
            string_agg="GROUP_CONCAT({expr})",
            checksum_template="BIT_XOR(CRC32({concat}))",
            index_query=(
                "SELECT INDEX_NAME, COLUMN_NAME, NON_UNIQUE FROM INFORMATION_SCHEMA.STATISTICS "
                "WHERE TABLE_SCHEMA = {schema} AND TABLE_NAME = {table}"
            ),
        ))

    register_dialect(Dialect(
        name="postgresql",
        aliases=["postgres", "pg"],
        checksum_template="SUM(HASHTEXT({concat})::BIGINT)",
        index_query="SELECT indexname, indexdef FROM pg_indexes WHERE schemaname = {schema} AND tablename = {table}",
    ))

    register_dialect(Dialect(
        name="redshift",
        cast_string="VARCHAR(65535)",
        string_agg="LISTAGG({expr}, ',')",
        checksum_template="SUM(STRTOL(LEFT(MD5({concat}), 8), 16))",
        index_query="SELECT indexname, indexdef FROM pg_indexes WHERE schemaname = {schema} AND tablename = {table}",
    ))

    register_dialect(Dialect(
        name="snowflake",
        cast_string="VARCHAR",
        string_agg="LISTAGG({expr}, ',')",
        checksum_template="HASH_AGG({cols})",
        checksum_needs_columns=False,
        index_query=_INFO_SCHEMA_CONSTRAINTS,
    ))

    register_dialect(Dialect(
        name="databricks",
        aliases=["spark", "spark_sql"],
        cast_float="DOUBLE",
        cast_string="STRING",
        concat_style="concat",
        string_agg="CONCAT_WS(',', COLLECT_LIST({expr}))",
        checksum_template="SUM(HASH({cols}))",
        checksum_needs_columns=False,
        index_query=_INFO_SCHEMA_CONSTRAINTS,
    ))

    register_dialect(Dialect(
        name="sqlite",
        cast_float="REAL",
        cast_string="TEXT",
        string_agg="GROUP_CONCAT({expr}, ',')",
        catalog_style="sqlite",
        checksum_template="SUM(LENGTH({concat}))",
        index_query="SELECT name, origin FROM pragma_index_list({table})",
    ))

    register_dialect(Dialect(
        name="oracle",
        cast_float="BINARY_DOUBLE",
        cast_string="VARCHAR2(4000)",
        limit_style="fetch",
        string_agg="LISTAGG({expr}, ',') WITHIN GROUP (ORDER BY COLUMN_NAME)",
        catalog_style="oracle",
        checksum_template="SUM(ORA_HASH({concat}))",
        index_query=(
            "SELECT INDEX_NAME, UNIQUENESS FROM ALL_INDEXES "
            "WHERE TABLE_OWNER = {schema} AND TABLE_NAME = {table}"
        ),
    ))
