"""Mapping-driven test generator: the core test catalog for one mapping sheet.

Mappings are grouped by target table. Grouping ignores case, quoting and
separators, and a group may be fed by several source tables (fan-in). For
each group the generator emits:

    1. Structure validation   declared target columns vs the live catalog
    2. Count validation       per source table
    3. Null validation        per source table, first mapped pair
    4. Duplicate validation   per source table, mapped PK or synthetic key
    5. Constraint listing     once per group
    6. Data accuracy          per source table: one consolidated direct-move
                              query plus one query per business rule

followed by pipeline audit/reject checks when the target tables name a
Landing, Stage or EDW layer.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from etlgen import classifier
from etlgen.dialects import Dialect, get_dialect, quote_literal
from etlgen.generators.base import (
    AuditNames,
    build_business_rule_expression,
    is_usable_column_name,
    make_safe_alias,
    normalize_identifier,
    phase_label,
    phase_number,
    resolve_column_name,
    split_table,
    table_key,
)
from etlgen.models import CRITICAL, MAJOR, ColumnMapping, MappingAnalysis, TestCase
from etlgen.rules import DEFAULT_SOURCE_TABLE, DEFAULT_TARGET_TABLE
from etlgen.schema import DatabaseSchema, find_column, find_table

logger = logging.getLogger(__name__)


@dataclass
class TableGroup:
    """All mappings loading one target table, split by source table."""
    target_table: str
    sources: dict[str, list[ColumnMapping]] = field(default_factory=dict)

    @property
    def mappings(self) -> list[ColumnMapping]:
        return [m for ms in self.sources.values() for m in ms]


def group_by_target(
    mappings: list[ColumnMapping],
    default_source_table: str = DEFAULT_SOURCE_TABLE,
    default_target_table: str = DEFAULT_TARGET_TABLE,
) -> list[TableGroup]:
    """Group mappings by normalized target table, keeping first-seen order."""
    groups: dict[str, TableGroup] = {}
    source_names: dict[tuple[str, str], str] = {}
    for m in mappings:
        target = m.target_table or default_target_table
        source = m.source_table or default_source_table
        group = groups.setdefault(table_key(target), TableGroup(target))
        source = source_names.setdefault((table_key(target), table_key(source)), source)
        group.sources.setdefault(source, []).append(m)
    return list(groups.values())


def _is_rule(m: ColumnMapping) -> bool:
    return not m.is_direct and not classifier.is_direct_move(m.transformation_logic)


@dataclass(frozen=True)
class _Run:
    """Dialects and schemas for one ``generate`` call."""
    src: Dialect
    tgt: Dialect
    source_schema: DatabaseSchema | None
    target_schema: DatabaseSchema | None


class MappingTestGenerator:
    """Builds the mapping-driven test catalog.

    ``generate`` keeps no per-call state on the instance, so one generator
    can serve concurrent or interleaved runs.
    """

    def __init__(self, audit: AuditNames | None = None) -> None:
        self.audit = audit or AuditNames()

    def generate(
        self,
        mappings: list[ColumnMapping],
        source_schema: DatabaseSchema | None = None,
        target_schema: DatabaseSchema | None = None,
        pipeline_name: str = "Unknown_Pipeline",
        source_dialect: str | Dialect | None = "mssql",
        target_dialect: str | Dialect | None = "mssql",
        default_source_table: str = DEFAULT_SOURCE_TABLE,
        default_target_table: str = DEFAULT_TARGET_TABLE,
        total_rows: int | None = None,
    ) -> MappingAnalysis:
        run = _Run(get_dialect(source_dialect), get_dialect(target_dialect), source_schema, target_schema)

        usable = [
            m for m in mappings
            if is_usable_column_name(m.source_column) and is_usable_column_name(m.target_column)
        ]
        groups = group_by_target(usable, default_source_table, default_target_table)

        tests: list[TestCase] = []
        for group in groups:
            tests.extend(self._group_tests(run, group))

        target_tables = [g.target_table for g in groups]
        phase = phase_number(target_tables)
        if phase is not None:
            tests.extend(self._audit_tests(run, phase))

        logger.debug(f"Mapping generator: {len(tests)} tests for {len(groups)} table groups")

        source_tables: dict[str, None] = {}
        for group in groups:
            source_tables.update(dict.fromkeys(group.sources))

        return MappingAnalysis(
            source_tables=list(source_tables),
            target_tables=target_tables,
            business_rules=self._summary(run, usable, tests, len(groups), total_rows),
            test_cases=tests,
            mappings=usable,
        )

    # ------------------------------------------------------------------
    # Per-group tests
    # ------------------------------------------------------------------

    def _group_tests(self, run: _Run, group: TableGroup) -> list[TestCase]:
        target = group.target_table
        sources = list(group.sources)
        phase = phase_label(sources[0], target)
        q_tgt = run.tgt.quote_name(target)
        tests = [self._structure_test(run, group, phase)]

        keys: dict[str, tuple[list[str], list[str]]] = {}
        for source in sources:
            mappings = group.sources[source]
            label = target if len(sources) == 1 else f"{target} ({source})"
            q_src = run.src.quote_name(source)
            pair_phase = phase_label(source, target)

            tests.append(TestCase(
                name=f"{pair_phase} | 2. Count Validation | {label}",
                description=f"Verify record count parity between {source} and {target}",
                source_sql=f"SELECT COUNT(*) AS TotalRecords FROM {q_src}",
                target_sql=f"SELECT COUNT(*) AS TotalRecords FROM {q_tgt}",
                expected_result="Row counts must be identical between sources and target.",
                category="general",
                severity=CRITICAL,
            ))

            first = mappings[0]
            s_null = run.src.quote(resolve_column_name(run.source_schema, source, first.source_column))
            t_null = run.tgt.quote(resolve_column_name(run.target_schema, target, first.target_column))
            tests.append(TestCase(
                name=f"{pair_phase} | 3. Null Data Validation | {label}",
                description=(
                    f"Verify null-count parity for mapped column "
                    f"{first.source_column} -> {first.target_column}."
                ),
                source_sql=f"SELECT COUNT(*) AS NullCount FROM {q_src} WHERE {s_null} IS NULL",
                target_sql=f"SELECT COUNT(*) AS NullCount FROM {q_tgt} WHERE {t_null} IS NULL",
                expected_result="Null counts for mapped columns should be identical.",
                category="general",
                severity=MAJOR,
            ))

            src_keys, tgt_keys = self._keys(run, source, target, mappings)
            keys[source] = (src_keys, tgt_keys)
            s_list = ", ".join(run.src.quote(k) for k in src_keys)
            t_list = ", ".join(run.tgt.quote(k) for k in tgt_keys)
            tests.append(TestCase(
                name=f"{pair_phase} | 4. Duplicate Data Validation | {label}",
                description=f"Verify uniqueness in {target} based on keys: {t_list}",
                source_sql=(
                    f"SELECT {s_list}, COUNT(*) AS duplicate_count FROM {q_src} "
                    f"GROUP BY {s_list} HAVING COUNT(*) > 1"
                ),
                target_sql=(
                    f"SELECT {t_list}, COUNT(*) AS duplicate_count FROM {q_tgt} "
                    f"GROUP BY {t_list} HAVING COUNT(*) > 1"
                ),
                expected_result="No duplicate records should exist for the defined keys.",
                category="general",
                severity=CRITICAL,
            ))

        constraints = self._constraints_sql(run, target)
        tests.append(TestCase(
            name=f"{phase} | 5. Table Constraint Validation | {target}",
            description=f"Verify constraints (PK, SK, BK) in {target} against requirements.",
            source_sql=constraints,
            target_sql=constraints,
            expected_result="All required table constraints should be correctly implemented.",
            category="structure",
            severity=MAJOR,
        ))

        for source in sources:
            label = target if len(sources) == 1 else f"{target} ({source})"
            tests.extend(self._accuracy_tests(run, source, target, label, group.sources[source], keys[source]))
        return tests

    def _structure_test(self, run: _Run, group: TableGroup, phase: str) -> TestCase:
        target = group.target_table
        target_info = find_table(run.target_schema, target)
        declared: dict[str, str] = {}
        for m in group.mappings:
            col = find_column(target_info, m.target_column)
            declared.setdefault(normalize_identifier(m.target_column), col.data_type if col else "ANY")
        truth = "\nUNION ALL\n".join(
            f"SELECT {quote_literal(name)} AS COLUMN_NAME, {quote_literal(dtype)} AS DATA_TYPE"
            for name, dtype in declared.items()
        )
        schema, table = split_table(target, target_info)
        has_schema = "." in target or target_info is not None
        return TestCase(
            name=f"{phase} | 1. Structure Validation (Target vs Mapping) | {target}",
            description=(
                f"Verify that the columns and data types in {target} exactly match "
                f"the definitions in the mapping sheet."
            ),
            source_sql=truth,
            target_sql=run.tgt.columns_query(schema if has_schema else "", table),
            expected_result=(
                "Target table structure must match the column list and types "
                "defined in the mapping document."
            ),
            category="structure",
            severity=MAJOR,
        )

    def _constraints_sql(self, run: _Run, target: str) -> str:
        target_info = find_table(run.target_schema, target)
        schema, table = split_table(target, target_info)
        if run.tgt.catalog_style != "information_schema":
            return run.tgt.indexes_query(schema, table)
        sql = "SELECT CONSTRAINT_NAME, CONSTRAINT_TYPE FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS"
        sql += f" WHERE TABLE_NAME = {quote_literal(table)}"
        if "." in target or target_info is not None:
            sql += f" AND TABLE_SCHEMA = {quote_literal(schema)}"
        return sql

    def _keys(
        self, run: _Run, source: str, target: str, mappings: list[ColumnMapping],
    ) -> tuple[list[str], list[str]]:
        """Source and target key columns: mapped schema PK, else the first mapped pair."""
        by_source = {normalize_identifier(m.source_column).lower(): m for m in mappings}
        info = find_table(run.source_schema, source)
        src_keys: list[str] = []
        tgt_keys: list[str] = []
        if info and info.primary_key:
            for pk in info.primary_key:
                m = by_source.get(normalize_identifier(pk).lower())
                if m is not None:
                    src_keys.append(pk)
                    tgt_keys.append(resolve_column_name(run.target_schema, target, m.target_column))
        if not src_keys:
            first = mappings[0]
            src_keys = [resolve_column_name(run.source_schema, source, first.source_column)]
            tgt_keys = [resolve_column_name(run.target_schema, target, first.target_column)]
        return src_keys, tgt_keys

    def _accuracy_tests(
        self,
        run: _Run,
        source: str,
        target: str,
        label: str,
        mappings: list[ColumnMapping],
        keys: tuple[list[str], list[str]],
    ) -> list[TestCase]:
        src, tgt = run.src, run.tgt
        q_src, q_tgt = src.quote_name(source), tgt.quote_name(target)
        phase = phase_label(source, target)
        src_keys, tgt_keys = keys
        aliases = [f"__key_{i + 1}" for i in range(len(src_keys))]
        s_key_select = [f"s.{src.quote(k)} AS {src.quote(a)}" for k, a in zip(src_keys, aliases)]
        t_key_select = [f"t.{tgt.quote(k)} AS {tgt.quote(a)}" for k, a in zip(tgt_keys, aliases)]
        s_order = ", ".join(src.quote(a) for a in aliases)
        t_order = ", ".join(tgt.quote(a) for a in aliases)
        tests: list[TestCase] = []

        direct = [m for m in mappings if not _is_rule(m)]
        if direct:
            used = set(a.lower() for a in aliases)
            s_cols, t_cols = [], []
            for i, m in enumerate(direct):
                alias = make_safe_alias(m.target_column, used, f"mapped_{i + 1}")
                s_col = resolve_column_name(run.source_schema, source, m.source_column)
                t_col = resolve_column_name(run.target_schema, target, m.target_column)
                s_cols.append(f"s.{src.quote(s_col)} AS {src.quote(alias)}")
                t_cols.append(f"t.{tgt.quote(t_col)} AS {tgt.quote(alias)}")
            tests.append(TestCase(
                name=f"{phase} | 6. Data Accuracy: Direct Moves (Consolidated) | {label}",
                description=f"Validate {len(direct)} direct mappings for {target} in one pass.",
                source_sql=f"SELECT {', '.join(s_key_select + s_cols)} FROM {q_src} s ORDER BY {s_order}",
                target_sql=f"SELECT {', '.join(t_key_select + t_cols)} FROM {q_tgt} t ORDER BY {t_order}",
                expected_result="All direct move values should match exactly.",
                category="direct_move",
                severity=CRITICAL,
            ))

        for m in mappings:
            if not _is_rule(m):
                continue
            used = set(a.lower() for a in aliases)
            alias = make_safe_alias(m.target_column, used, "business_rule")
            s_col = resolve_column_name(run.source_schema, source, m.source_column)
            t_col = resolve_column_name(run.target_schema, target, m.target_column)
            expr = build_business_rule_expression(m.transformation_logic, f"s.{src.quote(s_col)}")
            tests.append(TestCase(
                name=f"{phase} | 6. Data Accuracy: Business Rule: {m.target_column} | {label}",
                description=f"Validating: [{m.target_column}]. Logic: {m.transformation_logic}",
                source_sql=(
                    f"SELECT {', '.join(s_key_select + [f'{expr} AS {src.quote(alias)}'])} "
                    f"FROM {q_src} s ORDER BY {s_order}"
                ),
                target_sql=(
                    f"SELECT {', '.join(t_key_select + [f't.{tgt.quote(t_col)} AS {tgt.quote(alias)}'])} "
                    f"FROM {q_tgt} t ORDER BY {t_order}"
                ),
                expected_result="Transformed values should match exactly as per business rule.",
                category="business_rule",
                severity=CRITICAL,
            ))
        return tests

    # ------------------------------------------------------------------
    # Pipeline audit integration
    # ------------------------------------------------------------------

    def _audit_tests(self, run: _Run, phase: int) -> list[TestCase]:
        tgt, names = run.tgt, self.audit
        execution = tgt.q(names.audit_schema, names.execution_audit_table)
        pipeline = tgt.q(names.audit_schema, names.pipeline_audit_table)
        metadata = tgt.quote_name(names.edw_metadata_table if phase >= 3 else names.landing_metadata_table)

        return [
            TestCase(
                name=f"System: Pipeline Audit Trace | Validate execution for Phase {phase}",
                description=f"Verify entries in {execution} for Phase {phase}.",
                source_sql=(
                    "SELECT pa.objectId, pea.ETLId, pa.Status, pa.StartTimestamp, pa.EndTimestamp, "
                    "pea.PipelineExecutionAuditId, pa.ChildPipelineRunId, pa.EffectedRowInserted, "
                    "pa.EffectedRowUpdated, pa.Phase\n"
                    f"FROM {execution} pea\n"
                    f"INNER JOIN {pipeline} pa ON pea.ParentPipelineRunId = pa.ParentPipelineRunId\n"
                    f"INNER JOIN {metadata} m ON pa.objectId = m.objectId\n"
                    f"WHERE pa.Phase IN ({phase}, {phase + 1})"
                ),
                target_sql=(
                    f"SELECT COUNT(*) AS AuditCount FROM {execution} "
                    f"WHERE Phase = {phase} AND Status = 'Success'"
                ),
                expected_result="Record should exist with correct timestamps and row counts.",
                category="general",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"System: Reject Table Check | Validate rejected records | Phase {phase}",
                description=f"Verify if any records were rejected during Phase {phase}.",
                source_sql=(
                    f"SELECT COUNT(*) AS RejectCount, pa.objectId FROM {execution} pea\n"
                    f"INNER JOIN {pipeline} pa ON pea.ParentPipelineRunId = pa.ParentPipelineRunId\n"
                    f"WHERE pa.Status = 'Rejected' AND pa.Phase = {phase}\n"
                    "GROUP BY pa.objectId"
                ),
                target_sql=(
                    f"SELECT COUNT(*) AS RejectCount FROM {execution} "
                    f"WHERE Status = 'Rejected' AND Phase = {phase}"
                ),
                expected_result="Reject status should be tracked correctly in the audit system.",
                category="general",
                severity=MAJOR,
            ),
        ]

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _summary(
        self,
        run: _Run,
        mappings: list[ColumnMapping],
        tests: list[TestCase],
        group_count: int,
        total_rows: int | None,
    ) -> list[str]:
        lines = []
        if total_rows is not None:
            lines.append(f"Analyzed {total_rows} rows from mapping sheet")
        lines.append(f"Generated {len(tests)} test cases for {group_count} table groups")
        if run.source_schema is not None:
            lines.append("Source schema validated")
        if run.target_schema is not None:
            lines.append("Target schema validated")

        breakdown = Counter(m.transformation_type for m in mappings if _is_rule(m))
        if breakdown:
            summary = ", ".join(f"{count}x {kind.replace('_', ' ')}" for kind, count in breakdown.items())
            lines.append(f"Transformation breakdown: {summary}")
        return lines
