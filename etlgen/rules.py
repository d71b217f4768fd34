"""Rule tables: every keyword list and weight the engine's heuristics read.

Kept as plain data so the heuristics can be tested and extended without
touching control flow. Order matters wherever a table is a tuple of pairs:
the first matching entry wins.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Header discovery
# ---------------------------------------------------------------------------

HEADER_SCAN_LIMIT = 15

HEADER_KEYWORDS: tuple[str, ...] = (
    "source", "target", "transformation", "mapping", "logic", "rule", "field",
    "column", "src", "tgt", "business", "extraction", "loading", "metadata",
    "comment",
)

HEADER_KEY_WEIGHT = 1
HEADER_VALUE_WEIGHT = 2

# Spreadsheet readers invent these when a header cell is blank
AUTO_HEADER_PATTERN = re.compile(
    r"^(column[_\s-]?\d+|field[_\s-]?\d+|__empty(_\d+)?|unnamed:?\s*\d*(_level_\d+)?|\d+)$",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Column role scoring (Standard strategy)
# ---------------------------------------------------------------------------

SCORE_EXACT = 1.0
SCORE_AFFIX = 0.8
SCORE_CONTAINS = 0.6
SCORE_CONTAINED = 0.4
SCORE_THRESHOLD = 0.3

ROLE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "source_column": (
        "source", "src", "from", "source field", "source column", "source_field",
        "source_column", "input", "origin", "source_col", "srcfield", "src_col",
        "source system", "source_system", "nac", "legacy", "old", "current",
        "existing", "src_field",
    ),
    "target_column": (
        "target", "tgt", "to", "dest", "destination", "target field", "target column",
        "target_field", "target_column", "output", "target_col", "tgtfield", "tgt_col",
        "edw", "warehouse", "dw", "data warehouse", "new", "target system",
        "target_system", "tgt_field",
    ),
    "transform": (
        "transformation", "transform", "rule", "logic", "formula", "business rule",
        "mapping logic", "transformation_logic", "transform_rule", "business_rule",
        "mapping", "conversion", "calculation", "expression", "function", "comments",
        "remarks", "notes", "spec", "specification", "instruction", "transformation_rule",
    ),
    "source_table": ("source table", "src_table", "source_table", "source_entity", "src_entity"),
    "target_table": ("target table", "tgt_table", "target_table", "target_entity", "tgt_entity"),
    "source_schema": ("source schema", "src_schema", "source_schema"),
    "target_schema": ("target schema", "tgt_schema", "target_schema"),
    "source_db": ("source database", "src_database", "source_db", "src_db"),
    "target_db": ("target database", "tgt_database", "target_db", "tgt_db"),
}

# Roles are claimed in this order; a header claimed once is not reused
ROLE_ORDER: tuple[str, ...] = (
    "source_column", "target_column", "transform",
    "source_table", "target_table",
    "source_schema", "target_schema",
    "source_db", "target_db",
)

ROLE_CONFIDENCE: dict[str, float] = {
    "source_column": 0.35,
    "target_column": 0.35,
    "transform": 0.2,
    "source_table": 0.1,
}
MIN_STANDARD_CONFIDENCE = 0.4

# ---------------------------------------------------------------------------
# Fixed 19-column enterprise export (read positionally)
# ---------------------------------------------------------------------------

ENTERPRISE_COLUMN_COUNT = 19
ENTERPRISE_POSITIONS: dict[str, int] = {
    "source_schema": 1,
    "source_table": 2,
    "source_column": 3,
    "target_schema": 11,
    "target_table": 12,
    "target_column": 13,
    "transform": 17,
}
ENTERPRISE_CONFIDENCE = 0.95

# ---------------------------------------------------------------------------
# Other strategies
# ---------------------------------------------------------------------------

MULTI_SOURCE_TARGET_KEYWORDS: tuple[str, ...] = ("target", "edw", "warehouse", "target field")
MULTI_SOURCE_ANNOTATIONS: tuple[str, ...] = (
    "note", "comment", "description", "complexity", "logic", "rule", "transform", "remark",
)
MULTI_SOURCE_CONFIDENCE = 0.7
MULTI_SOURCE_TARGET_TABLE = "Target Warehouse"

RULE_ID_KEYWORDS: tuple[str, ...] = ("rule", "sr", "no", "#", "rule name", "rule id")
RULE_DESCRIPTION_KEYWORDS: tuple[str, ...] = ("description", "desc")
RULE_SYNTAX_KEYWORDS: tuple[str, ...] = ("syntax", "sql", "formula", "code")
RULE_CATALOG_CONFIDENCE = 0.6

VERTICAL_MARKERS: tuple[str, ...] = ("source", "target")

GENERIC_CONFIDENCE = 0.05

# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

PLACEHOLDER_TOKENS: frozenset[str] = frozenset({
    "", "-", "--", "na", "n/a", "none", "null", "nil", "unknown", "tbd",
    "to be decided", "to be confirmed", "to be determined", "not applicable",
    "none selected",
})

ROLE_WORDS: frozenset[str] = frozenset({"source", "target", "field", "column"})

# ---------------------------------------------------------------------------
# Transformation classification
# ---------------------------------------------------------------------------

DIRECT_MOVE_PHRASES: tuple[str, ...] = (
    "DIRECT", "SAME", "AS IS", "AS-IS", "COPY", "1:1", "1 TO 1", "STRAIGHT",
    "NO CHANGE", "NONE", "N/A", "NA", "-", "MATCH", "PASS THROUGH", "PASSTHROUGH",
)

_IDENT = r"(?:\[[^\]]+\]|\"[^\"]+\"|`[^`]+`|[A-Za-z_][A-Za-z0-9_]*)"
BARE_IDENTIFIER = re.compile(rf"^{_IDENT}(?:\s*\.\s*{_IDENT})*$")

# Checked in order: the most specific category wins
CLASSIFIER_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("lookup", re.compile(r"\b(JOIN|LOOKUP|MERGE|FETCH)\b")),
    ("date_format", re.compile(r"\b(FORMAT|DATEFORMAT|DATE_FORMAT|DATEADD|DATEDIFF|GETDATE|SYSDATE|TO_DATE)\b")),
    ("date_format", re.compile(r"\bCONVERT\b.*(DATE|TIME)")),
    ("trim", re.compile(r"\b[LR]?TRIM\b")),
    ("string_replace", re.compile(r"\b(SUBSTRING|SUBSTR|LEFT|RIGHT|MID|REPLACE|STUFF|TRANSLATE)\b")),
    ("case_conversion", re.compile(r"\b(UPPER|LOWER|UCASE|LCASE|INITCAP)\b")),
    ("concatenation", re.compile(r"\bCONCAT(_WS)?\b|\|\||\+\s*'|'\s*\+")),
    ("null_handling", re.compile(r"\b(ISNULL|COALESCE|NULLIF|NVL|IFNULL)\b")),
    ("aggregation", re.compile(r"\b(SUM|AVG|COUNT|MIN|MAX)\s*\(|\bGROUP\s+BY\b")),
    ("type_casting", re.compile(r"\b(CAST|TRY_CAST|CONVERT|TO_NUMBER|TO_CHAR|PARSE|TRY_PARSE)\b")),
    ("business_rule", re.compile(r"\b(CASE|WHEN|IF|IIF|DECODE)\b")),
    ("business_rule", re.compile(r"\bWHERE\b.*\b(AND|OR)\b")),
    ("business_rule", re.compile(r"\bMAP(PED)?\b.*\bTO\b")),
    ("business_rule", re.compile(r"\d\s*[-+*/]|[-+*/]\s*\d")),
)

COMPLEXITY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bCASE\b.*?\bWHEN\b", re.DOTALL),
    re.compile(r"\bJOIN\b"),
    re.compile(r"\b(SELECT|SUBQUERY|EXISTS)\b"),
    re.compile(r"\("),
)

SOURCE_VALUE_RULE = re.compile(r"=|->")
SOURCE_VALUE_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")

# ---------------------------------------------------------------------------
# ETL phases
# ---------------------------------------------------------------------------

# First match per target table wins; the highest number across targets is used
PHASE_NUMBER_RULES: tuple[tuple[str, int], ...] = (
    ("EDWLANDING", 2),
    ("EDW_LANDING", 2),
    ("EDW", 3),
    ("STAGE", 2),
    ("LANDING", 1),
)

# ---------------------------------------------------------------------------
# Data-quality triggers
# ---------------------------------------------------------------------------

DQ_TRIM_TRIGGERS: tuple[str, ...] = ("trim", "clean", "remove space", "whitespace")
DQ_MANDATORY_TRIGGERS: tuple[str, ...] = ("mandatory", "not null", "required", "pk")
DQ_NUMERIC_COLUMN_WORDS: tuple[str, ...] = ("amount", "price", "qty", "quantity", "balance", "total", "sum")
DQ_NUMERIC_LOGIC_TRIGGERS: tuple[str, ...] = ("numeric", "decimal", "integer", "float")
DQ_CARDINALITY_COLUMN_WORDS: tuple[str, ...] = ("type", "code", "category", "status", "id")

# ---------------------------------------------------------------------------
# Generator column guards
# ---------------------------------------------------------------------------

UNUSABLE_COLUMN_NAMES: frozenset[str] = frozenset({
    "unknown", "source", "target", "n/a", "na", "-", "--", "column", "field", "null", "none",
})
UNUSABLE_COLUMN_PATTERN = re.compile(r"^column[_\s-]?\d+$", re.IGNORECASE)
UNUSABLE_COLUMN_MARKERS: tuple[str, ...] = ("[Auto-detected", "[Configure")

DEFAULT_SOURCE_TABLE = "SourceTable"
DEFAULT_TARGET_TABLE = "TargetTable"
DEFAULT_SCHEMA = "dbo"
