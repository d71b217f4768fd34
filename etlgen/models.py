"""Domain model: mappings extracted from a sheet and the tests generated from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Transformation types
DIRECT_MOVE = "direct_move"
LOOKUP = "lookup"
DATE_FORMAT = "date_format"
TRIM = "trim"
NULL_HANDLING = "null_handling"
CONCATENATION = "concatenation"
AGGREGATION = "aggregation"
CASE_CONVERSION = "case_conversion"
STRING_REPLACE = "string_replace"
TYPE_CASTING = "type_casting"
BUSINESS_RULE = "business_rule"
UNKNOWN = "unknown"

TRANSFORMATION_TYPES = (
    DIRECT_MOVE, LOOKUP, DATE_FORMAT, TRIM, NULL_HANDLING, CONCATENATION,
    AGGREGATION, CASE_CONVERSION, STRING_REPLACE, TYPE_CASTING, BUSINESS_RULE, UNKNOWN,
)

# Complexity
SIMPLE = "simple"
MEDIUM = "medium"
COMPLEX = "complex"

# Test categories
CATEGORIES = (
    "structure", "general", "completeness", "business_rule", "direct_move",
    "metadata", "quality", "transformation", "regression", "reference",
    "incremental", "integration", "performance",
)

# Severities
CRITICAL = "critical"
MAJOR = "major"
MINOR = "minor"


@dataclass(frozen=True)
class ColumnMapping:
    """One source column -> target column correspondence."""
    source_column: str
    target_column: str
    source_table: str | None = None
    target_table: str | None = None
    transformation_type: str = DIRECT_MOVE
    transformation_logic: str | None = None
    complexity: str = SIMPLE

    @property
    def is_direct(self) -> bool:
        return self.transformation_type == DIRECT_MOVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_column": self.source_column,
            "target_column": self.target_column,
            "source_table": self.source_table,
            "target_table": self.target_table,
            "transformation_type": self.transformation_type,
            "transformation_logic": self.transformation_logic,
            "complexity": self.complexity,
        }


@dataclass
class ParsedMappingSheet:
    """Everything the parser could recover from one sheet.

    ``source_tables`` and ``target_tables`` are insertion-ordered sets
    (dict keys), so the first table named in the sheet stays first.
    """
    source_tables: dict[str, None] = field(default_factory=dict)
    target_tables: dict[str, None] = field(default_factory=dict)
    column_mappings: list[ColumnMapping] = field(default_factory=list)
    detected_format: str = "Unknown"
    transformation_rules: list[str] = field(default_factory=list)
    total_rows: int = 0
    detected_columns: list[str] = field(default_factory=list)
    format_confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_tables": list(self.source_tables),
            "target_tables": list(self.target_tables),
            "column_mappings": [m.to_dict() for m in self.column_mappings],
            "detected_format": self.detected_format,
            "transformation_rules": self.transformation_rules,
            "metadata": {
                "total_rows": self.total_rows,
                "detected_columns": self.detected_columns,
                "format_confidence": self.format_confidence,
            },
        }


@dataclass(frozen=True)
class TestCase:
    """A paired source/target query whose results are expected to agree."""
    __test__ = False  # not a pytest test class

    name: str
    description: str
    source_sql: str
    target_sql: str
    expected_result: str
    category: str = "general"
    severity: str = MAJOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "source_sql": self.source_sql,
            "target_sql": self.target_sql,
            "expected_result": self.expected_result,
            "category": self.category,
            "severity": self.severity,
        }


@dataclass
class MappingAnalysis:
    """Aggregate result of one engine run."""
    source_tables: list[str] = field(default_factory=list)
    target_tables: list[str] = field(default_factory=list)
    business_rules: list[str] = field(default_factory=list)
    test_cases: list[TestCase] = field(default_factory=list)
    mappings: list[ColumnMapping] = field(default_factory=list)
    detected_format: str = "Unknown"
    format_confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_tables": self.source_tables,
            "target_tables": self.target_tables,
            "business_rules": self.business_rules,
            "detected_format": self.detected_format,
            "format_confidence": self.format_confidence,
            "test_cases": [t.to_dict() for t in self.test_cases],
            "mappings": [m.to_dict() for m in self.mappings],
        }
