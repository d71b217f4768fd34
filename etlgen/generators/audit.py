"""Audit generator: pipeline execution and reject-table cross-checks.

Every table pair gets three checks against the warehouse audit layer:

    0. the execution audit table exists (prerequisite; flagged as missing
       when the target schema is known and does not contain it)
    1. the pipeline's execution entries, filtered by pipeline name
    2. reject table count vs audit reject count
"""

from __future__ import annotations

import logging

from etlgen.dialects import Dialect, get_dialect, quote_literal
from etlgen.generators.base import (
    AuditNames,
    GenerationContext,
    Generator,
    phase_label,
    split_table,
)
from etlgen.models import CRITICAL, MAJOR, MINOR, TestCase
from etlgen.schema import DatabaseSchema, find_table

logger = logging.getLogger(__name__)


def audit_table_present(schema: DatabaseSchema | None, names: AuditNames) -> bool | None:
    """True/False when the schema is known, None when it is not."""
    if schema is None:
        return None
    qualified = f"{names.audit_schema}.{names.execution_audit_table}"
    return find_table(schema, qualified) is not None or find_table(schema, names.execution_audit_table) is not None


def generate_audit_tests(
    source_table: str,
    target_table: str,
    pipeline_name: str = "Unknown_Pipeline",
    target_schema: DatabaseSchema | None = None,
    source_dialect: str | Dialect | None = "mssql",
    target_dialect: str | Dialect | None = "mssql",
    names: AuditNames | None = None,
) -> list[TestCase]:
    names = names or AuditNames()
    src, tgt = get_dialect(source_dialect), get_dialect(target_dialect)
    phase = phase_label(source_table, target_table)
    execution = tgt.q(names.audit_schema, names.execution_audit_table)
    pipeline = tgt.q(names.audit_schema, names.pipeline_audit_table)
    _, bare_target = split_table(target_table)
    reject = tgt.q(names.reject_schema, f"{bare_target}{names.reject_suffix}")

    present = audit_table_present(target_schema, names)
    if present is False:
        logger.warning(f"Audit table {names.audit_schema}.{names.execution_audit_table} not found in target schema")
        prerequisite_name = f"{phase} | Structure: Audit Table Missing"
        prerequisite_desc = (
            f"Critical: The required audit table {execution} was not found in the target database."
        )
    else:
        prerequisite_name = f"{phase} | Structure: Audit Table Exists"
        prerequisite_desc = f"Verify the required audit table {execution} exists in the target database."

    return [
        TestCase(
            name=prerequisite_name,
            description=prerequisite_desc,
            source_sql="SELECT 1 AS TableCount",
            target_sql=tgt.table_exists_query(names.audit_schema, names.execution_audit_table),
            expected_result="Audit table must exist for ETL validation",
            category="structure",
            severity=CRITICAL,
        ),
        TestCase(
            name=f"{phase} | Audit: Pipeline Execution Verification ({source_table} -> {target_table})",
            description=(
                f"Verify audit table entries for pipeline phases (Start/End time, Status, "
                f"Row Counts) for pipeline '{pipeline_name}'"
            ),
            source_sql=(
                "-- Reference: Expected Source Counts\n"
                f"SELECT COUNT(*) AS ExpectedCount FROM {src.quote_name(source_table)}"
            ),
            target_sql=(
                "SELECT\n"
                "    ea.PipelineExecutionAuditId,\n"
                "    ea.Status,\n"
                "    ea.StartTimestamp,\n"
                "    ea.EndTimestamp,\n"
                "    ea.EffectedRowInserted,\n"
                "    ea.EffectedRowUpdated\n"
                f"FROM {execution} ea\n"
                f"JOIN {pipeline} pa ON ea.ParentPipelineRunId = pa.ParentPipelineRunId\n"
                f"WHERE pa.PipelineName = {quote_literal(pipeline_name)}\n"
                "ORDER BY ea.StartTimestamp DESC"
            ),
            expected_result=(
                "Audit table should contain success entry with correct timestamps "
                "and row counts matching source"
            ),
            category="general",
            severity=MAJOR,
        ),
        TestCase(
            name=f"{phase} | Audit: Reject Table Count Verification | {target_table}",
            description="Verify that Rejected Record count matches the Audit table rejected count",
            source_sql=f"SELECT COUNT(*) AS RejectCount FROM {execution} WHERE Status = 'Rejected'",
            target_sql=f"SELECT COUNT(*) AS RejectCount FROM {reject}",
            expected_result="Reject table count must match Audit log reject count",
            category="general",
            severity=MINOR,
        ),
    ]


class AuditGenerator(Generator):

    @property
    def name(self) -> str:
        return "audit"

    @property
    def description(self) -> str:
        return "Audit table prerequisite, pipeline execution and reject-table checks."

    def generate_all(self, context: GenerationContext) -> list[TestCase]:
        tests: list[TestCase] = []
        for source, target in context.table_pairs():
            tests.extend(generate_audit_tests(
                source, target, context.pipeline_name, context.target_schema,
                context.source_dialect, context.target_dialect, context.audit,
            ))
        return tests
