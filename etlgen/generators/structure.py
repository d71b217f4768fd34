"""Schema-validation generator: source vs target table structure."""

from __future__ import annotations

from etlgen.dialects import Dialect, get_dialect
from etlgen.generators.base import GenerationContext, Generator, phase_label, split_table
from etlgen.models import CRITICAL, MAJOR, TestCase
from etlgen.schema import DatabaseSchema, find_table


def generate_schema_validation_tests(
    source_table: str,
    target_table: str,
    source_schema: DatabaseSchema | None = None,
    target_schema: DatabaseSchema | None = None,
    source_dialect: str | Dialect | None = "mssql",
    target_dialect: str | Dialect | None = "mssql",
) -> list[TestCase]:
    src, tgt = get_dialect(source_dialect), get_dialect(target_dialect)
    s_schema, s_table = split_table(source_table, find_table(source_schema, source_table))
    t_schema, t_table = split_table(target_table, find_table(target_schema, target_table))
    phase = phase_label(source_table, target_table)

    return [
        TestCase(
            name=f"{phase} | Structure: Column Count Verification | {target_table}",
            description=f"Verify Source [{source_table}] and Target [{target_table}] have consistent column counts",
            source_sql=src.columns_query(s_schema, s_table, "COUNT(*) AS ColCount", order_by=""),
            target_sql=tgt.columns_query(t_schema, t_table, "COUNT(*) AS ColCount", order_by=""),
            expected_result="Column counts should match exactly",
            category="structure",
            severity=CRITICAL,
        ),
        TestCase(
            name=f"{phase} | Structure: Data Type Consistency | {target_table}",
            description=f"Verify data types match between Source [{source_table}] and Target [{target_table}]",
            source_sql=src.columns_query(s_schema, s_table, order_by="COLUMN_NAME"),
            target_sql=tgt.columns_query(t_schema, t_table, order_by="COLUMN_NAME"),
            expected_result="Data types for mapped columns must match",
            category="structure",
            severity=MAJOR,
        ),
    ]


class SchemaValidationGenerator(Generator):

    @property
    def name(self) -> str:
        return "schema_validation"

    @property
    def description(self) -> str:
        return "Column count and data type consistency between source and target tables."

    def generate_all(self, context: GenerationContext) -> list[TestCase]:
        tests: list[TestCase] = []
        for source, target in context.table_pairs():
            tests.extend(generate_schema_validation_tests(
                source, target,
                context.source_schema, context.target_schema,
                context.source_dialect, context.target_dialect,
            ))
        return tests
