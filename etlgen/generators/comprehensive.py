"""Comprehensive generator: the full nine-category ETL test catalog for one table pair.

Produces a fixed set of 30 tests:

    metadata 5, completeness 3, quality 3, transformation 7,
    regression 3, reference 3, incremental 4, integration 1, performance 1

Sample columns come from the discovered schema when available, otherwise from
placeholders (``Column1..3``, key ``ID``) so the catalog is always complete.
"""

from __future__ import annotations

from etlgen import classifier
from etlgen.dialects import Dialect, get_dialect, quote_literal
from etlgen.generators.base import (
    GenerationContext,
    Generator,
    split_table,
    table_key,
)
from etlgen.models import CRITICAL, MAJOR, MINOR, ColumnMapping, TestCase
from etlgen.schema import DatabaseSchema, TableInfo, find_table

PLACEHOLDER_COLUMNS = ("Column1", "Column2", "Column3")
PLACEHOLDER_KEY = "ID"
SAMPLE_SIZE = 5
MAPPED_TYPE_CHECK_LIMIT = 10


class _Side:
    """One side (source or target) of a table pair, with its dialect and table."""

    def __init__(self, name: str, dialect: Dialect, info: TableInfo | None) -> None:
        self.name = name
        self.dialect = dialect
        self.info = info
        self.schema, self.table = split_table(name, info)
        self.qualified = dialect.q(self.schema, self.table)
        self.transformed: set[str] = set()

    def col(self, name: str) -> str:
        return self.dialect.quote(name)

    def sample_columns(self) -> list[str]:
        if self.info and self.info.columns:
            return [c.name for c in self.info.columns[:SAMPLE_SIZE]]
        return list(PLACEHOLDER_COLUMNS)

    def columns_sql(self, select: str, where: str = "", order_by: str = "ORDINAL_POSITION") -> str:
        return self.dialect.columns_query(self.schema, self.table, select, where, order_by)

    def checksum_select(self, alias: str) -> str:
        """``, <checksum> AS alias`` over comparable non-transformed columns, or '' when unavailable."""
        columns: list[str] = []
        if self.info:
            columns = [
                self.dialect.comparable(self.col(c.name), c.data_type)
                for c in self.info.columns
                if c.name.lower() not in self.transformed
            ]
        expr = self.dialect.checksum(columns)
        return f",\n    {expr} AS {alias}" if expr else ""


class ComprehensiveTestGenerator(Generator):

    @property
    def name(self) -> str:
        return "comprehensive"

    @property
    def description(self) -> str:
        return "Full nine-category ETL catalog (30 tests) per source/target table pair."

    def generate_all(self, context: GenerationContext) -> list[TestCase]:
        tests: list[TestCase] = []
        for source, target in context.table_pairs():
            tests.extend(self.generate(
                source, target,
                context.source_schema, context.target_schema,
                context.source_dialect, context.target_dialect,
                context.mappings,
            ))
        return tests

    def generate(
        self,
        source_table: str,
        target_table: str,
        source_schema: DatabaseSchema | None = None,
        target_schema: DatabaseSchema | None = None,
        source_dialect: str | Dialect | None = "mssql",
        target_dialect: str | Dialect | None = "mssql",
        column_mappings: list[ColumnMapping] | None = None,
    ) -> list[TestCase]:
        s = _Side(source_table, get_dialect(source_dialect), find_table(source_schema, source_table))
        t = _Side(target_table, get_dialect(target_dialect), find_table(target_schema, target_table))
        pair = f"{source_table} → {target_table}"
        key = s.info.columns[0].name if s.info and s.info.columns else PLACEHOLDER_KEY

        relevant = [
            m for m in column_mappings or []
            if table_key(m.source_table or source_table) == table_key(source_table)
            and table_key(m.target_table or target_table) == table_key(target_table)
        ]
        transformed = [
            m for m in relevant
            if not m.is_direct and not classifier.is_direct_move(m.transformation_logic)
        ]
        s.transformed = {m.source_column.lower() for m in transformed}
        t.transformed = {m.target_column.lower() for m in transformed}

        return (
            self._metadata(s, t, pair, key, relevant)
            + self._completeness(s, t, pair)
            + self._quality(s, t, pair, key)
            + self._transformation(s, t, pair, key)
            + self._regression(s, t, pair)
            + self._reference(s, t, key)
            + self._incremental(s, t, pair, key)
            + self._integration(s, t, pair, key)
            + self._performance(s, t)
        )

    # ------------------------------------------------------------------
    # Metadata (5)
    # ------------------------------------------------------------------

    def _metadata(self, s: _Side, t: _Side, pair: str, key: str, relevant: list[ColumnMapping]) -> list[TestCase]:
        tests: list[TestCase] = []
        mapped = [m for m in relevant if m.source_column and m.target_column][:MAPPED_TYPE_CHECK_LIMIT]
        if mapped:
            select = "COLUMN_NAME, DATA_TYPE, CHARACTER_MAXIMUM_LENGTH, NUMERIC_PRECISION, NUMERIC_SCALE"
            s_names = ", ".join(quote_literal(m.source_column) for m in mapped)
            t_names = ", ".join(quote_literal(m.target_column) for m in mapped)
            tests.append(TestCase(
                name=f"MetaData | Mapped Columns Data Type Check - {pair}",
                description=f"Verify data types match for {len(mapped)} mapped columns from mapping sheet",
                source_sql=s.columns_sql(select, f"COLUMN_NAME IN ({s_names})", "COLUMN_NAME"),
                target_sql=t.columns_sql(select, f"COLUMN_NAME IN ({t_names})", "COLUMN_NAME"),
                expected_result=f"Data types should match for all {len(mapped)} mapped columns",
                category="metadata",
                severity=CRITICAL,
            ))
        else:
            select = "COLUMN_NAME, DATA_TYPE, CHARACTER_MAXIMUM_LENGTH"
            tests.append(TestCase(
                name=f"MetaData | Data Type Check - {pair}",
                description="Verify data types match between source and target columns",
                source_sql=s.columns_sql(select),
                target_sql=t.columns_sql(select),
                expected_result="Data types should match for mapped columns",
                category="metadata",
                severity=CRITICAL,
            ))

        naming = "(COLUMN_NAME LIKE '% %' OR COLUMN_NAME LIKE '%-%')"
        profile = "COUNT(*) AS ColumnCount, SUM(CHARACTER_MAXIMUM_LENGTH) AS TotalLength"
        tests += [
            TestCase(
                name=f"MetaData | Data Length Check - {pair}",
                description="Ensure column lengths are sufficient in target",
                source_sql=(
                    f"SELECT MAX({s.dialect.length_fn}({s.col(key)})) AS MaxLength FROM {s.qualified}"
                ),
                target_sql=t.columns_sql(
                    "CHARACTER_MAXIMUM_LENGTH", f"COLUMN_NAME = {quote_literal(key)}", order_by="",
                ),
                expected_result="Target column length >= source max data length",
                category="metadata",
                severity=MAJOR,
            ),
            TestCase(
                name=f"MetaData | Index and Constraint Check - {pair}",
                description="Verify primary keys and indexes exist on target table",
                source_sql=s.dialect.indexes_query(s.schema, s.table),
                target_sql=t.dialect.indexes_query(t.schema, t.table),
                expected_result="Target should have appropriate indexes",
                category="metadata",
                severity=MAJOR,
            ),
            TestCase(
                name=f"MetaData | Naming Standards Check - {t.name}",
                description="Verify table and column names follow naming conventions",
                source_sql=s.columns_sql("COLUMN_NAME", naming, order_by=""),
                target_sql=t.columns_sql("COLUMN_NAME", naming, order_by=""),
                expected_result="All names should follow naming standards (no violations)",
                category="metadata",
                severity=MINOR,
            ),
            TestCase(
                name=f"MetaData | Cross-Environment Check - {t.name}",
                description="Verify metadata consistency across environments (DEV/QA/PROD)",
                source_sql=t.columns_sql(profile, order_by=""),
                target_sql="-- Compare with other environment\n" + t.columns_sql(profile, order_by=""),
                expected_result="Metadata should be consistent across environments",
                category="metadata",
                severity=MAJOR,
            ),
        ]
        return tests

    # ------------------------------------------------------------------
    # Completeness (3)
    # ------------------------------------------------------------------

    def _completeness(self, s: _Side, t: _Side, pair: str) -> list[TestCase]:
        def null_profile(side: _Side) -> str:
            sums = ",\n    ".join(
                f"SUM(CASE WHEN {side.col(c)} IS NULL THEN 1 ELSE 0 END) AS {side.col(c + '_Nulls')}"
                for c in side.sample_columns()
            )
            return f"SELECT\n    {sums}\nFROM {side.qualified}"

        return [
            TestCase(
                name=f"Completeness | Record Count Validation - {pair}",
                description="Ensure source and target have same number of rows",
                source_sql=f"SELECT COUNT(*) AS Record_Count FROM {s.qualified}",
                target_sql=f"SELECT COUNT(*) AS Record_Count FROM {t.qualified}",
                expected_result="Row counts should be equal",
                category="completeness",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Completeness | Column Data Profile - {pair}",
                description="Validate all required columns are populated",
                source_sql=null_profile(s),
                target_sql=null_profile(t),
                expected_result="NULL counts should match for non-transformed columns",
                category="completeness",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Completeness | Full Dataset Comparison (Direct Moves Only) - {pair}",
                description="Compare row counts and checksums for non-transformed columns (Direct Moves)",
                source_sql=(
                    f"SELECT\n    COUNT(*) AS TotalRows{s.checksum_select('DataChecksum')}\n"
                    f"FROM {s.qualified}"
                ),
                target_sql=(
                    f"SELECT\n    COUNT(*) AS TotalRows{t.checksum_select('DataChecksum')}\n"
                    f"FROM {t.qualified}"
                ),
                expected_result="Row counts and checksums should match (indicating identical data)",
                category="completeness",
                severity=CRITICAL,
            ),
        ]

    # ------------------------------------------------------------------
    # Quality (3)
    # ------------------------------------------------------------------

    def _quality(self, s: _Side, t: _Side, pair: str, key: str) -> list[TestCase]:
        sk, tk = s.col(key), t.col(key)
        cs, ct = s.dialect.cast_string, t.dialect.cast_string
        return [
            TestCase(
                name=f"Quality | Duplicate Data Checks - {pair}",
                description="Identify duplicate records in target",
                source_sql=f"SELECT {sk}, COUNT(*) AS DuplicateCount\nFROM {s.qualified}\nGROUP BY {sk}\nHAVING COUNT(*) > 1",
                target_sql=f"SELECT {tk}, COUNT(*) AS DuplicateCount\nFROM {t.qualified}\nGROUP BY {tk}\nHAVING COUNT(*) > 1",
                expected_result="No duplicates in target (or matching source duplicates)",
                category="quality",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Quality | Data Validation Rules - {pair}",
                description="Check for invalid data patterns",
                source_sql=(
                    f"SELECT COUNT(*) AS InvalidRecords\nFROM {s.qualified}\n"
                    f"WHERE {sk} IS NULL OR CAST({sk} AS {cs}) = ''"
                ),
                target_sql=(
                    f"SELECT COUNT(*) AS InvalidRecords\nFROM {t.qualified}\n"
                    f"WHERE {tk} IS NULL OR CAST({tk} AS {ct}) = ''"
                ),
                expected_result="Target should have 0 invalid records if business rules applied",
                category="quality",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Quality | Data Integrity Checks - {pair}",
                description="Verify referential integrity constraints",
                source_sql=f"SELECT COUNT(*) AS OrphanRecords\nFROM {s.qualified}\nWHERE {sk} IS NOT NULL",
                target_sql=f"SELECT COUNT(*) AS ValidRecords\nFROM {t.qualified}\nWHERE {tk} IS NOT NULL",
                expected_result="All non-null records should be present",
                category="quality",
                severity=MAJOR,
            ),
        ]

    # ------------------------------------------------------------------
    # Transformation (7)
    # ------------------------------------------------------------------

    def _transformation(self, s: _Side, t: _Side, pair: str, key: str) -> list[TestCase]:
        sk, tk = s.col(key), t.col(key)
        s_cols = ", ".join(s.col(c) for c in s.sample_columns())
        t_cols = ", ".join(t.col(c) for c in t.sample_columns())

        def total(side: _Side, col: str) -> str:
            info_col = next((c for c in side.info.columns if c.name == key), None) if side.info else None
            if info_col is not None and info_col.is_numeric:
                return f"SUM(CAST({col} AS {side.dialect.cast_float})) AS TotalSum"
            return f"SUM({side.dialect.length_fn}(CAST({col} AS {side.dialect.cast_string}))) AS TotalLength"

        return [
            TestCase(
                name=f"Transformation | White Box - Direct Move Validation - {pair}",
                description="White Box: Verify columns moved without modification (with knowledge of ETL logic)",
                source_sql=s.dialect.limit(f"{s_cols}\nFROM {s.qualified}\nORDER BY {sk}", 100),
                target_sql=t.dialect.limit(f"{t_cols}\nFROM {t.qualified}\nORDER BY {tk}", 100),
                expected_result="Values should match exactly for direct move columns",
                category="transformation",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Transformation | Black Box - Output Validation - {pair}",
                description="Black Box: Verify transformation output without knowing internal logic",
                source_sql=f"SELECT COUNT(*) AS SourceCount,\n    COUNT(DISTINCT {sk}) AS UniqueValues\nFROM {s.qualified}",
                target_sql=f"SELECT COUNT(*) AS TargetCount,\n    COUNT(DISTINCT {tk}) AS UniqueValues\nFROM {t.qualified}",
                expected_result="Output metrics should match expected transformation results",
                category="transformation",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Transformation | NULL Handling Validation - {pair}",
                description="Verify NULL values are properly handled",
                source_sql=f"SELECT COUNT(*) AS NullCount\nFROM {s.qualified}\nWHERE {sk} IS NULL",
                target_sql=(
                    f"SELECT COUNT(*) AS NullOrDefaultCount\nFROM {t.qualified}\n"
                    f"WHERE {tk} IS NULL OR CAST({tk} AS {t.dialect.cast_string}) IN ('0', 'N/A', 'Unknown')"
                ),
                expected_result="NULL source values transformed to default values in target",
                category="transformation",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Transformation | String Trimming Validation - {pair}",
                description="Ensure extra spaces are removed",
                source_sql=f"SELECT COUNT(*) AS UntrimmedCount\nFROM {s.qualified}\nWHERE {sk} LIKE ' %' OR {sk} LIKE '% '",
                target_sql=f"SELECT COUNT(*) AS TrimmedCount\nFROM {t.qualified}\nWHERE {tk} LIKE ' %' OR {tk} LIKE '% '",
                expected_result="Target should have no leading/trailing spaces",
                category="transformation",
                severity=MINOR,
            ),
            TestCase(
                name=f"Transformation | Aggregation Validation - {pair}",
                description="Verify SUM/AVG/MIN/MAX calculations",
                source_sql=f"SELECT\n    COUNT(*) AS RecordCount,\n    {total(s, sk)}\nFROM {s.qualified}",
                target_sql=f"SELECT\n    COUNT(*) AS RecordCount,\n    {total(t, tk)}\nFROM {t.qualified}",
                expected_result="Aggregated values should match",
                category="transformation",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Transformation | Data Type Conversion - {pair}",
                description="Verify data type conversions are accurate",
                source_sql=s.dialect.limit(
                    f"{sk}, CAST({sk} AS {s.dialect.cast_string}) AS ConvertedValue\n"
                    f"FROM {s.qualified}\nWHERE {sk} IS NOT NULL", 10,
                ),
                target_sql=t.dialect.limit(
                    f"{tk}, CAST({tk} AS {t.dialect.cast_string}) AS ConvertedValue\n"
                    f"FROM {t.qualified}\nWHERE {tk} IS NOT NULL", 10,
                ),
                expected_result="Converted values should match expected format",
                category="transformation",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Transformation | Data Denormalization Check - {pair}",
                description="Verify denormalization logic (if applicable)",
                source_sql=f"SELECT {sk}, COUNT(*) AS OccurrenceCount\nFROM {s.qualified}\nGROUP BY {sk}",
                target_sql=f"SELECT {tk}, COUNT(*) AS OccurrenceCount\nFROM {t.qualified}\nGROUP BY {tk}",
                expected_result="Denormalized data should maintain correct relationships",
                category="transformation",
                severity=MAJOR,
            ),
        ]

    # ------------------------------------------------------------------
    # Regression (3)
    # ------------------------------------------------------------------

    def _regression(self, s: _Side, t: _Side, pair: str) -> list[TestCase]:
        signature = t.dialect.string_agg.format(
            expr=t.dialect.concat("COLUMN_NAME", "':'", "DATA_TYPE"),
        )
        return [
            TestCase(
                name=f"Regression | Metadata Changes Detection - {t.name}",
                description="Detect any changes to table metadata since last run",
                source_sql=t.columns_sql(f"COUNT(*) AS ColumnCount, {signature} AS ColumnSignature", order_by=""),
                target_sql=(
                    "-- Compare with baseline metadata\n"
                    + t.columns_sql("COUNT(*) AS BaselineColumnCount", order_by="")
                ),
                expected_result="No unexpected metadata changes",
                category="regression",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Regression | Baseline Data Comparison - {t.name}",
                description="Compare current target data against source (as baseline)",
                source_sql=(
                    f"SELECT COUNT(*) AS BaselineCount{s.checksum_select('BaselineChecksum')}\n"
                    f"FROM {s.qualified}"
                ),
                target_sql=(
                    "-- Compare with baseline or previous run\n"
                    f"SELECT COUNT(*) AS CurrentCount{t.checksum_select('CurrentChecksum')}\n"
                    f"FROM {t.qualified}"
                ),
                expected_result="Current data matches expected baseline",
                category="regression",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Regression | Automated ETL Testing - {pair}",
                description="Verify ETL process can be automated and repeated consistently",
                source_sql=(
                    f"SELECT COUNT(*) AS SourceRecords{s.checksum_select('SourceChecksum')}\n"
                    f"FROM {s.qualified}"
                ),
                target_sql=(
                    f"SELECT COUNT(*) AS TargetRecords{t.checksum_select('TargetChecksum')}\n"
                    f"FROM {t.qualified}"
                ),
                expected_result="Automated runs produce consistent results",
                category="regression",
                severity=MAJOR,
            ),
        ]

    # ------------------------------------------------------------------
    # Reference data (3)
    # ------------------------------------------------------------------

    def _reference(self, s: _Side, t: _Side, key: str) -> list[TestCase]:
        sk, tk = s.col(key), t.col(key)
        return [
            TestCase(
                name=f"Reference Data | Domain Value Validation - {t.name}",
                description="Ensure values conform to allowed reference values",
                source_sql=f"SELECT {sk}\nFROM {s.qualified}\nWHERE {sk} IS NOT NULL\nGROUP BY {sk}",
                target_sql=f"SELECT {tk}\nFROM {t.qualified}\nWHERE {tk} IS NOT NULL\nGROUP BY {tk}",
                expected_result="All target values should be valid",
                category="reference",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Reference Data | Cross-Environment Domain Check - {t.name}",
                description="Compare domain values across environments (DEV/QA/PROD)",
                source_sql=f"SELECT {sk}, COUNT(*) AS Frequency\nFROM {s.qualified}\nGROUP BY {sk}\nORDER BY {sk}",
                target_sql=(
                    "-- Compare with other environment\n"
                    f"SELECT {tk}, COUNT(*) AS Frequency\nFROM {t.qualified}\nGROUP BY {tk}\nORDER BY {tk}"
                ),
                expected_result="Domain values should be consistent across environments",
                category="reference",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Reference Data | Change Tracking - {t.name}",
                description="Track reference data changes over time",
                source_sql=f"SELECT {sk}, COUNT(*) AS CurrentCount\nFROM {s.qualified}\nGROUP BY {sk}",
                target_sql=(
                    "-- Compare with historical reference data\n"
                    f"SELECT {tk}, COUNT(*) AS HistoricalCount\nFROM {t.qualified}\nGROUP BY {tk}"
                ),
                expected_result="Reference data changes should be tracked and documented",
                category="reference",
                severity=MINOR,
            ),
        ]

    # ------------------------------------------------------------------
    # Incremental (4)
    # ------------------------------------------------------------------

    def _incremental(self, s: _Side, t: _Side, pair: str, key: str) -> list[TestCase]:
        sk, tk = s.col(key), t.col(key)
        return [
            TestCase(
                name=f"Incremental | Duplicate Data Checks - {pair}",
                description="Ensure no duplicates introduced during incremental load",
                source_sql=f"SELECT {sk}, COUNT(*) AS DuplicateCount\nFROM {s.qualified}\nGROUP BY {sk}\nHAVING COUNT(*) > 1",
                target_sql=f"SELECT {tk}, COUNT(*) AS DuplicateCount\nFROM {t.qualified}\nGROUP BY {tk}\nHAVING COUNT(*) > 1",
                expected_result="No duplicate records in incremental load",
                category="incremental",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Incremental | Compare Data Values - {pair}",
                description="Verify incremental data values match source",
                source_sql=f"SELECT {sk}, COUNT(*) AS RecordCount\nFROM {s.qualified}\nGROUP BY {sk}",
                target_sql=f"SELECT {tk}, COUNT(*) AS RecordCount\nFROM {t.qualified}\nGROUP BY {tk}",
                expected_result="Incremental data values should match source",
                category="incremental",
                severity=CRITICAL,
            ),
            TestCase(
                name=f"Incremental | Data Denormalization Check - {pair}",
                description="Verify denormalization during incremental load",
                source_sql=f"SELECT COUNT(DISTINCT {sk}) AS UniqueCount\nFROM {s.qualified}",
                target_sql=f"SELECT COUNT(DISTINCT {tk}) AS UniqueCount\nFROM {t.qualified}",
                expected_result="Denormalization should be consistent in incremental loads",
                category="incremental",
                severity=MAJOR,
            ),
            TestCase(
                name=f"Incremental | Slowly Changing Dimension (SCD Type 2) - {t.name}",
                description="Verify SCD Type 2 logic for historical tracking",
                source_sql=f"SELECT {tk}, COUNT(*) AS VersionCount\nFROM {t.qualified}\nGROUP BY {tk}\nHAVING COUNT(*) > 1",
                target_sql=(
                    "-- Verify SCD columns exist and are properly maintained\n"
                    f"SELECT {tk},\n    COUNT(*) AS Versions\nFROM {t.qualified}\nGROUP BY {tk}"
                ),
                expected_result="Historical versions preserved with correct SCD flags",
                category="incremental",
                severity=CRITICAL,
            ),
        ]

    # ------------------------------------------------------------------
    # Integration (1) and performance (1)
    # ------------------------------------------------------------------

    def _integration(self, s: _Side, t: _Side, pair: str, key: str) -> list[TestCase]:
        sk, tk = s.col(key), t.col(key)
        return [TestCase(
            name=f"Integration | End-to-End Data Flow - {pair}",
            description="Validate complete ETL pipeline from source to target",
            source_sql=f"SELECT COUNT(*) AS SourceRecords,\n    MIN({sk}) AS MinValue,\n    MAX({sk}) AS MaxValue\nFROM {s.qualified}",
            target_sql=f"SELECT COUNT(*) AS TargetRecords,\n    MIN({tk}) AS MinValue,\n    MAX({tk}) AS MaxValue\nFROM {t.qualified}",
            expected_result="All source records processed and loaded to target",
            category="integration",
            severity=CRITICAL,
        )]

    def _performance(self, s: _Side, t: _Side) -> list[TestCase]:
        return [TestCase(
            name=f"Performance | Load Time Validation - {t.name}",
            description="Ensure ETL completes within acceptable timeframe",
            source_sql=f"SELECT COUNT(*) AS RecordCount\nFROM {s.qualified}",
            target_sql=f"-- Monitor ETL execution time\nSELECT COUNT(*) AS ProcessedCount\nFROM {t.qualified}",
            expected_result="ETL completes within SLA (adjust based on volume)",
            category="performance",
            severity=MAJOR,
        )]
