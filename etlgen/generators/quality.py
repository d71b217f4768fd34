"""Data-quality generator: rule-triggered checks, only where the mapping asks for them.

Four checks, each emitted at most once per table pair and only when a
mapping's transformation text or source column name triggers it:

    whitespace   logic mentions trim / clean / remove space / whitespace
    mandatory    logic mentions mandatory / not null / required / pk
    numeric      source column is an amount/price/qty/... or logic names a
                 numeric type
    cardinality  source column is a type/code/category/status/id
"""

from __future__ import annotations

import re

from etlgen.dialects import Dialect, get_dialect
from etlgen.generators.base import (
    GenerationContext,
    Generator,
    normalize_identifier,
    phase_label,
    table_key,
)
from etlgen.models import CRITICAL, MAJOR, MINOR, ColumnMapping, TestCase
from etlgen.rules import (
    DEFAULT_SOURCE_TABLE,
    DEFAULT_TARGET_TABLE,
    DQ_CARDINALITY_COLUMN_WORDS,
    DQ_MANDATORY_TRIGGERS,
    DQ_NUMERIC_COLUMN_WORDS,
    DQ_NUMERIC_LOGIC_TRIGGERS,
    DQ_TRIM_TRIGGERS,
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def column_words(name: str) -> list[str]:
    """Lower-cased words of a column name: ``OrderTotalAmt`` -> order, total, amt."""
    spaced = _CAMEL_BOUNDARY.sub(" ", normalize_identifier(name))
    return [w for w in re.split(r"[\s_\-.]+", spaced.lower()) if w]


def _column_matches(name: str, words: tuple[str, ...]) -> bool:
    tokens = column_words(name)
    return any(t == w or t == w + "s" for t in tokens for w in words)


def _logic_matches(logic: str | None, triggers: tuple[str, ...]) -> bool:
    if not logic:
        return False
    lower = " ".join(logic.lower().split())
    return any(re.search(rf"\b{re.escape(t)}\b", lower) for t in triggers)


def generate_data_quality_tests(
    mappings: list[ColumnMapping],
    source_table: str = DEFAULT_SOURCE_TABLE,
    target_table: str = DEFAULT_TARGET_TABLE,
    source_dialect: str | Dialect | None = "mssql",
    target_dialect: str | Dialect | None = "mssql",
) -> list[TestCase]:
    """Data-quality checks for one table pair. Returns [] when nothing triggers."""
    src, tgt = get_dialect(source_dialect), get_dialect(target_dialect)
    q_src, q_tgt = src.quote_name(source_table), tgt.quote_name(target_table)
    phase = phase_label(source_table, target_table)
    tests: list[TestCase] = []

    def t_col(m: ColumnMapping) -> str:
        return tgt.quote(normalize_identifier(m.target_column))

    def s_col(m: ColumnMapping) -> str:
        return src.quote(normalize_identifier(m.source_column))

    trim = [m for m in mappings if _logic_matches(m.transformation_logic, DQ_TRIM_TRIGGERS)]
    if trim:
        condition = " OR ".join(f"({t_col(m)} LIKE ' %' OR {t_col(m)} LIKE '% ')" for m in trim)
        tests.append(TestCase(
            name=f"{phase} | DQ: Whitespace/Trimming Validation | {target_table}",
            description=f"Verify validation rules (Trim) applied to: {', '.join(t_col(m) for m in trim)}",
            source_sql="SELECT 0 AS UntrimmedCount",
            target_sql=f"SELECT COUNT(*) AS UntrimmedCount FROM {q_tgt} WHERE {condition}",
            expected_result="Count of records with leading/trailing spaces should be 0",
            category="business_rule",
            severity=MINOR,
        ))

    mandatory = [m for m in mappings if _logic_matches(m.transformation_logic, DQ_MANDATORY_TRIGGERS)]
    if mandatory:
        condition = " OR ".join(f"{t_col(m)} IS NULL" for m in mandatory)
        tests.append(TestCase(
            name=f"{phase} | DQ: Mandatory Column Check | {target_table}",
            description=f"Verify no NULLs in mandatory columns: {', '.join(t_col(m) for m in mandatory)}",
            source_sql="SELECT 0 AS NullCount",
            target_sql=f"SELECT COUNT(*) AS NullCount FROM {q_tgt} WHERE {condition}",
            expected_result="Null count must be 0 for mandatory fields",
            category="business_rule",
            severity=CRITICAL,
        ))

    numeric = [
        m for m in mappings
        if _column_matches(m.source_column, DQ_NUMERIC_COLUMN_WORDS)
        or _logic_matches(m.transformation_logic, DQ_NUMERIC_LOGIC_TRIGGERS)
    ]
    if numeric:
        m = numeric[0]
        tests.append(TestCase(
            name=f"{phase} | DQ: Numeric Range Validation | {target_table}",
            description=f"Verify data stays within expected boundaries for {t_col(m)}",
            source_sql=f"SELECT MIN({s_col(m)}) AS MinVal, MAX({s_col(m)}) AS MaxVal FROM {q_src}",
            target_sql=f"SELECT MIN({t_col(m)}) AS MinVal, MAX({t_col(m)}) AS MaxVal FROM {q_tgt}",
            expected_result="Target ranges should be consistent with source (or within defined business thresholds)",
            category="business_rule",
            severity=MAJOR,
        ))

    categorical = [m for m in mappings if _column_matches(m.source_column, DQ_CARDINALITY_COLUMN_WORDS)]
    if categorical:
        m = categorical[0]
        tests.append(TestCase(
            name=f"{phase} | DQ: Cardinality Check (Distinct Counts) | {target_table}",
            description=f"Verify unique value count for categorical column: {t_col(m)}",
            source_sql=f"SELECT COUNT(DISTINCT {s_col(m)}) AS DistinctCount FROM {q_src}",
            target_sql=f"SELECT COUNT(DISTINCT {t_col(m)}) AS DistinctCount FROM {q_tgt}",
            expected_result="Number of distinct values should match exactly",
            category="business_rule",
            severity=MAJOR,
        ))

    return tests


class DataQualityGenerator(Generator):

    @property
    def name(self) -> str:
        return "data_quality"

    @property
    def description(self) -> str:
        return "Whitespace, mandatory, numeric range and cardinality checks triggered by mapping rules."

    def generate_all(self, context: GenerationContext) -> list[TestCase]:
        tests: list[TestCase] = []
        for source, target in context.table_pairs():
            pair_mappings = [
                m for m in context.mappings
                if table_key(context.source_table_of(m)) == table_key(source)
                and table_key(context.target_table_of(m)) == table_key(target)
            ]
            tests.extend(generate_data_quality_tests(
                pair_mappings, source, target, context.source_dialect, context.target_dialect,
            ))
        return tests
