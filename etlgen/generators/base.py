"""Base generator class and the SQL helpers every generator shares.

Generators turn validated column mappings into TestCase objects. They never
execute SQL: every query is built as text through the Dialect of the side it
runs against, so a generator never branches on engine names.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from etlgen import classifier
from etlgen.dialects import Dialect, get_dialect, split_name, strip_identifier
from etlgen.models import ColumnMapping, TestCase
from etlgen.rules import (
    DEFAULT_SCHEMA,
    DEFAULT_SOURCE_TABLE,
    DEFAULT_TARGET_TABLE,
    PHASE_NUMBER_RULES,
    UNUSABLE_COLUMN_MARKERS,
    UNUSABLE_COLUMN_NAMES,
    UNUSABLE_COLUMN_PATTERN,
)
from etlgen.schema import DatabaseSchema, TableInfo, find_column, find_table

SOURCE_TO_LANDING = "Source To Landing"
LANDING_TO_STAGE = "Landing To Stage"
STAGE_TO_EDW_LANDING = "Stage To EDW Landing"
EDW_LANDING_TO_EDW = "EDW Landing To EDW"


# ---------------------------------------------------------------------------
# Generation context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuditNames:
    """Names of the audit, reject and pipeline-metadata objects in the warehouse."""
    audit_schema: str = "Audit"
    execution_audit_table: str = "PipelineExecutionAudit"
    pipeline_audit_table: str = "PipelineAudit"
    reject_schema: str = "Reject"
    reject_suffix: str = "_Reject"
    landing_metadata_table: str = "Metadata.DLLanding"
    edw_metadata_table: str = "Metadata.EDWLanding"


@dataclass
class GenerationContext:
    """Everything a generator may look at for one engine run."""
    mappings: list[ColumnMapping] = field(default_factory=list)
    source_schema: DatabaseSchema | None = None
    target_schema: DatabaseSchema | None = None
    pipeline_name: str = "Unknown_Pipeline"
    source_dialect: Dialect = field(default_factory=lambda: get_dialect(None))
    target_dialect: Dialect = field(default_factory=lambda: get_dialect(None))
    default_source_table: str = DEFAULT_SOURCE_TABLE
    default_target_table: str = DEFAULT_TARGET_TABLE
    audit: AuditNames = field(default_factory=AuditNames)

    def source_table_of(self, mapping: ColumnMapping) -> str:
        return mapping.source_table or self.default_source_table

    def target_table_of(self, mapping: ColumnMapping) -> str:
        return mapping.target_table or self.default_target_table

    def table_pairs(self) -> list[tuple[str, str]]:
        """Distinct (source, target) table pairs, first-seen order, case-insensitive."""
        pairs: dict[tuple[str, str], tuple[str, str]] = {}
        for m in self.mappings:
            src, tgt = self.source_table_of(m), self.target_table_of(m)
            pairs.setdefault((table_key(src), table_key(tgt)), (src, tgt))
        return list(pairs.values())


class Generator(ABC):
    """Base class for the optional test generators the engine can run."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name (e.g., 'data_quality')."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @abstractmethod
    def generate_all(self, context: GenerationContext) -> list[TestCase]:
        """All tests this generator contributes for one engine run."""
        ...


# ---------------------------------------------------------------------------
# Identifier helpers
# ---------------------------------------------------------------------------

_DECORATION = re.compile(r"[\[\]`\"'\s_-]")


def table_key(name: str | None) -> str:
    """Grouping key: case, separator and quoting insensitive.

    ``[dbo].[Customer]``, ``dbo.customer`` and ``DBO.CUSTOMER`` share a key.
    """
    return _DECORATION.sub("", (name or "").lower())


def normalize_identifier(value: str | None) -> str:
    """Bare column name: the last dotted segment without quoting."""
    if not value:
        return ""
    parts = [strip_identifier(p) for p in split_name(str(value).strip())]
    parts = [p for p in parts if p]
    return parts[-1] if parts else ""


def is_usable_column_name(name: str | None) -> bool:
    if not name:
        return False
    value = str(name).strip()
    if not value or value.lower() in UNUSABLE_COLUMN_NAMES:
        return False
    if UNUSABLE_COLUMN_PATTERN.match(value):
        return False
    return not any(marker in value for marker in UNUSABLE_COLUMN_MARKERS)


def make_safe_alias(base: str, used: set[str], fallback: str) -> str:
    """Column alias made of word characters, unique within ``used``."""
    seed = re.sub(r"\W", "_", normalize_identifier(base), flags=re.ASCII) or fallback
    alias, i = seed, 2
    while alias.lower() in used:
        alias = f"{seed}_{i}"
        i += 1
    used.add(alias.lower())
    return alias


def split_table(name: str, table: TableInfo | None = None) -> tuple[str, str]:
    """(schema, table) for a possibly dotted table name.

    Database prefixes are dropped. A bare name takes its schema from the
    discovered table, else ``dbo``.
    """
    parts = [strip_identifier(p) for p in split_name(name or "")]
    parts = [p for p in parts if p]
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    bare = parts[0] if parts else name
    return (table.schema if table and table.schema else DEFAULT_SCHEMA), bare


def resolve_column_name(schema: DatabaseSchema | None, table_name: str | None, column: str) -> str:
    """The column's real name from the schema, or the name as written."""
    col = find_column(find_table(schema, table_name), column)
    return col.name if col else normalize_identifier(column) or column


# ---------------------------------------------------------------------------
# ETL phases
# ---------------------------------------------------------------------------

def phase_label(source_table: str | None, target_table: str | None) -> str:
    """Which hop of the Source -> Landing -> Stage -> EDW Landing -> EDW chain a pair is."""
    s = (source_table or "").upper()
    t = (target_table or "").upper()
    if "EDWLANDING" in s or "EDW_LANDING" in s or ("EDW" in s and "EDW" in t):
        return EDW_LANDING_TO_EDW
    if "STAGE" in s or "EDWLANDING" in t or "EDW_LANDING" in t:
        return STAGE_TO_EDW_LANDING
    if "LANDING" in s or "STAGE" in t:
        return LANDING_TO_STAGE
    return SOURCE_TO_LANDING


def phase_number(target_tables: list[str]) -> int | None:
    """Highest pipeline phase suggested by any target table, None if none do."""
    found: list[int] = []
    for table in target_tables:
        upper = (table or "").upper()
        for marker, number in PHASE_NUMBER_RULES:
            if marker in upper:
                found.append(number)
                break
    return max(found) if found else None


# ---------------------------------------------------------------------------
# Business-rule SQL synthesis
# ---------------------------------------------------------------------------

_WORD = {fn: re.compile(rf"\b{fn}\b", re.IGNORECASE) for fn in ("UPPER", "LOWER", "LTRIM", "RTRIM", "TRIM")}
_DEFAULT_VALUE = re.compile(r"\b(?:COALESCE|ISNULL|NVL)\s*\(\s*[^,]+,\s*([^)]+)\)", re.IGNORECASE)
_CAST_TYPE = re.compile(
    r"\bCAST\s*\(.+?\s+AS\s+([A-Za-z_][\w ]*?(?:\(\s*\w+(?:\s*,\s*\d+)?\s*\))?)\s*\)",
    re.IGNORECASE,
)
_ROUND_DIGITS = re.compile(r"\bROUND\s*\(\s*[^,]+,\s*(\d+)\s*\)", re.IGNORECASE)


def build_business_rule_expression(logic: str | None, source_expr: str) -> str:
    """Source-side SQL for a transformation, from a small fixed pattern table.

    Recognizes UPPER, LOWER, LTRIM+RTRIM, TRIM, COALESCE/ISNULL/NVL with a
    literal default, CAST ... AS type and ROUND(..., n). Anything else
    compares the bare source column.
    """
    raw = (logic or "").strip()
    if not raw or classifier.is_direct_move(raw):
        return source_expr
    if _WORD["UPPER"].search(raw):
        return f"UPPER({source_expr})"
    if _WORD["LOWER"].search(raw):
        return f"LOWER({source_expr})"
    if _WORD["LTRIM"].search(raw) and _WORD["RTRIM"].search(raw):
        return f"LTRIM(RTRIM({source_expr}))"
    if _WORD["TRIM"].search(raw):
        return f"TRIM({source_expr})"
    match = _DEFAULT_VALUE.search(raw)
    if match:
        return f"COALESCE({source_expr}, {match.group(1).strip()})"
    match = _CAST_TYPE.search(raw)
    if match:
        return f"CAST({source_expr} AS {match.group(1).strip()})"
    match = _ROUND_DIGITS.search(raw)
    if match:
        return f"ROUND({source_expr}, {match.group(1)})"
    return source_expr
