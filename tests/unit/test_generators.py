"""Tests for the optional generators and their registry (etlgen/generators/)."""

from collections import Counter

import pytest

from etlgen.generators import get_generator, list_generators, register_generator
from etlgen.generators.audit import audit_table_present, generate_audit_tests
from etlgen.generators.base import AuditNames, GenerationContext, Generator
from etlgen.generators.comprehensive import ComprehensiveTestGenerator
from etlgen.generators.quality import DataQualityGenerator, column_words, generate_data_quality_tests
from etlgen.generators.structure import generate_schema_validation_tests
from etlgen.models import ColumnMapping


PAIR = "dbo.Customer → Landing.Customer"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class _EchoGenerator(Generator):
    @property
    def name(self) -> str:
        return "echo_test"

    @property
    def description(self) -> str:
        return "Returns nothing."

    def generate_all(self, context):
        return []


class TestGeneratorRegistry:

    def test_builtins_in_order(self):
        assert list_generators()[:4] == ["data_quality", "schema_validation", "audit", "comprehensive"]

    def test_get_returns_fresh_instance(self):
        generator = get_generator("audit")
        assert generator.name == "audit"
        assert generator is not get_generator("audit")

    def test_unknown_raises_key_error(self):
        with pytest.raises(KeyError):
            get_generator("does_not_exist")

    def test_register_custom(self):
        register_generator("echo_test", _EchoGenerator)
        assert "echo_test" in list_generators()
        assert get_generator("echo_test").generate_all(GenerationContext()) == []

    @pytest.mark.parametrize("name", ["data_quality", "schema_validation", "audit", "comprehensive"])
    def test_builtin_metadata(self, name):
        generator = get_generator(name)
        assert generator.name == name
        assert generator.description


# ---------------------------------------------------------------------------
# Data quality
# ---------------------------------------------------------------------------

class TestColumnWords:

    @pytest.mark.parametrize("name, expected", [
        ("OrderTotalAmt", ["order", "total", "amt"]),
        ("customer_status", ["customer", "status"]),
        ("XMLData", ["xml", "data"]),
        ("[dbo].[Cust ID]", ["cust", "id"]),
    ])
    def test_split(self, name, expected):
        assert column_words(name) == expected


class TestDataQuality:

    def test_triggered_checks(self, customer_mappings):
        tests = generate_data_quality_tests(customer_mappings, "dbo.Customer", "Landing.Customer")
        assert [t.name for t in tests] == [
            "Source To Landing | DQ: Whitespace/Trimming Validation | Landing.Customer",
            "Source To Landing | DQ: Numeric Range Validation | Landing.Customer",
            "Source To Landing | DQ: Cardinality Check (Distinct Counts) | Landing.Customer",
        ]
        assert all(t.category == "business_rule" for t in tests)

    def test_whitespace_sql(self, customer_mappings):
        test = generate_data_quality_tests(customer_mappings, "dbo.Customer", "Landing.Customer")[0]
        assert test.source_sql == "SELECT 0 AS UntrimmedCount"
        assert test.target_sql == (
            "SELECT COUNT(*) AS UntrimmedCount FROM [Landing].[Customer] "
            "WHERE ([EmailAddress] LIKE ' %' OR [EmailAddress] LIKE '% ')"
        )

    def test_numeric_uses_amount_like_column(self, customer_mappings):
        test = generate_data_quality_tests(customer_mappings, "dbo.Customer", "Landing.Customer")[1]
        assert test.source_sql == "SELECT MIN([Balance]) AS MinVal, MAX([Balance]) AS MaxVal FROM [dbo].[Customer]"
        assert test.target_sql == (
            "SELECT MIN([BalanceAmount]) AS MinVal, MAX([BalanceAmount]) AS MaxVal FROM [Landing].[Customer]"
        )

    def test_cardinality_uses_id_column(self, customer_mappings):
        test = generate_data_quality_tests(customer_mappings, "dbo.Customer", "Landing.Customer")[2]
        assert test.source_sql == "SELECT COUNT(DISTINCT [CustID]) AS DistinctCount FROM [dbo].[Customer]"

    def test_mandatory_trigger(self):
        mapping = ColumnMapping("Region", "RegionName", transformation_logic="Mandatory, NOT NULL")
        tests = generate_data_quality_tests([mapping], "dbo.Customer", "Landing.Customer")
        assert [t.name.split(" | ")[1] for t in tests] == ["DQ: Mandatory Column Check"]
        assert tests[0].target_sql.endswith("WHERE [RegionName] IS NULL")
        assert tests[0].severity == "critical"

    def test_nothing_triggered(self):
        mappings = [ColumnMapping("Name", "CustomerName"), ColumnMapping("Valid", "IsValid")]
        assert generate_data_quality_tests(mappings, "dbo.Customer", "Landing.Customer") == []

    def test_numeric_logic_trigger(self):
        mapping = ColumnMapping("Score", "ScoreValue", transformation_logic="Cast to decimal")
        tests = generate_data_quality_tests([mapping], "dbo.Customer", "Landing.Customer")
        assert [t.name.split(" | ")[1] for t in tests] == ["DQ: Numeric Range Validation"]

    def test_generator_runs_per_table_pair(self, customer_mappings):
        other = ColumnMapping("OrderTotal", "OrderTotal", source_table="dbo.Orders", target_table="Landing.Orders")
        context = GenerationContext(mappings=customer_mappings + [other])
        tests = DataQualityGenerator().generate_all(context)
        assert len(tests) == 4
        assert tests[-1].name == "Source To Landing | DQ: Numeric Range Validation | Landing.Orders"


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------

class TestSchemaValidation:

    def test_two_structure_checks(self):
        tests = generate_schema_validation_tests("dbo.Customer", "Landing.Customer")
        assert [t.name for t in tests] == [
            "Source To Landing | Structure: Column Count Verification | Landing.Customer",
            "Source To Landing | Structure: Data Type Consistency | Landing.Customer",
        ]
        assert [t.category for t in tests] == ["structure", "structure"]

    def test_column_count_sql(self):
        test = generate_schema_validation_tests("dbo.Customer", "Landing.Customer")[0]
        assert test.source_sql.startswith("SELECT COUNT(*) AS ColCount\nFROM INFORMATION_SCHEMA.COLUMNS")
        assert "TABLE_SCHEMA = 'dbo'" in test.source_sql
        assert "TABLE_SCHEMA = 'Landing'" in test.target_sql
        assert "ORDER BY" not in test.target_sql

    def test_data_types_ordered_by_name(self):
        test = generate_schema_validation_tests("dbo.Customer", "Landing.Customer")[1]
        assert test.source_sql.endswith("ORDER BY COLUMN_NAME")

    def test_bare_name_takes_discovered_schema(self, source_schema):
        test = generate_schema_validation_tests("Customer", "Landing.Customer", source_schema=source_schema)[0]
        assert "TABLE_SCHEMA = 'dbo'" in test.source_sql

    def test_dialect_catalog(self):
        test = generate_schema_validation_tests("dbo.Customer", "Landing.Customer", target_dialect="oracle")[0]
        assert "ALL_TAB_COLUMNS" in test.target_sql
        assert "INFORMATION_SCHEMA" in test.source_sql


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class TestAudit:

    def test_audit_table_present(self, target_schema, source_schema):
        names = AuditNames()
        assert audit_table_present(target_schema, names) is True
        assert audit_table_present(source_schema, names) is False
        assert audit_table_present(None, names) is None

    def test_three_checks_in_order(self, target_schema):
        tests = generate_audit_tests("dbo.Customer", "Landing.Customer", "CustomerLoad", target_schema)
        assert [t.name for t in tests] == [
            "Source To Landing | Structure: Audit Table Exists",
            "Source To Landing | Audit: Pipeline Execution Verification (dbo.Customer -> Landing.Customer)",
            "Source To Landing | Audit: Reject Table Count Verification | Landing.Customer",
        ]

    def test_missing_audit_table_flagged(self, source_schema):
        tests = generate_audit_tests("dbo.Customer", "Landing.Customer", target_schema=source_schema)
        assert tests[0].name == "Source To Landing | Structure: Audit Table Missing"
        assert tests[0].description.startswith("Critical:")

    def test_unknown_schema_assumes_present(self):
        tests = generate_audit_tests("dbo.Customer", "Landing.Customer")
        assert tests[0].name.endswith("Audit Table Exists")

    def test_pipeline_name_is_escaped(self):
        tests = generate_audit_tests("dbo.Customer", "Landing.Customer", "O'Neil Load")
        assert "WHERE pa.PipelineName = 'O''Neil Load'" in tests[1].target_sql

    def test_reject_table_name(self):
        tests = generate_audit_tests("dbo.Customer", "Landing.Customer")
        assert tests[2].target_sql == "SELECT COUNT(*) AS RejectCount FROM [Reject].[Customer_Reject]"

    def test_custom_names(self):
        names = AuditNames(reject_schema="Err", reject_suffix="_Bad")
        tests = generate_audit_tests("dbo.Customer", "Landing.Customer", names=names)
        assert tests[2].target_sql == "SELECT COUNT(*) AS RejectCount FROM [Err].[Customer_Bad]"

    def test_generator_uses_context(self, customer_mappings, target_schema):
        context = GenerationContext(mappings=customer_mappings, target_schema=target_schema, pipeline_name="Nightly")
        tests = get_generator("audit").generate_all(context)
        assert len(tests) == 3
        assert "'Nightly'" in tests[1].target_sql


# ---------------------------------------------------------------------------
# Comprehensive
# ---------------------------------------------------------------------------

class TestComprehensive:

    @pytest.fixture
    def tests(self, source_schema, target_schema, customer_mappings):
        return ComprehensiveTestGenerator().generate(
            "dbo.Customer", "Landing.Customer", source_schema, target_schema,
            column_mappings=customer_mappings,
        )

    def test_thirty_tests(self, tests):
        assert len(tests) == 30

    def test_category_counts(self, tests):
        assert Counter(t.category for t in tests) == {
            "metadata": 5,
            "completeness": 3,
            "quality": 3,
            "transformation": 7,
            "regression": 3,
            "reference": 3,
            "incremental": 4,
            "integration": 1,
            "performance": 1,
        }

    def test_names_unique(self, tests):
        assert len({t.name for t in tests}) == 30

    def test_mapped_type_check(self, tests):
        assert tests[0].name == f"MetaData | Mapped Columns Data Type Check - {PAIR}"
        assert "COLUMN_NAME IN ('CustID', 'Name', 'Email', 'Balance')" in tests[0].source_sql
        assert "COLUMN_NAME IN ('CustomerID', 'CustomerName', 'EmailAddress', 'BalanceAmount')" in tests[0].target_sql

    def test_without_mappings(self, source_schema, target_schema):
        tests = ComprehensiveTestGenerator().generate("dbo.Customer", "Landing.Customer", source_schema, target_schema)
        assert tests[0].name == f"MetaData | Data Type Check - {PAIR}"

    def test_key_from_source_schema(self, tests):
        dup = next(t for t in tests if t.name.startswith("Quality | Duplicate Data Checks"))
        assert dup.source_sql.startswith("SELECT [CustID], COUNT(*) AS DuplicateCount")

    def test_checksum_skips_transformed_columns(self, tests):
        full = next(t for t in tests if "Full Dataset Comparison" in t.name)
        assert "CHECKSUM_AGG(CHECKSUM([CustID], [Balance])) AS DataChecksum" in full.source_sql
        assert "CHECKSUM_AGG(CHECKSUM([CustomerID], [BalanceAmount])) AS DataChecksum" in full.target_sql

    def test_regression_checksums_skip_renamed_targets(self, tests):
        reconcile = [t for t in tests if t.category == "regression" and "Checksum" in t.target_sql]
        assert reconcile
        for test in reconcile:
            assert "[CustomerName]" not in test.target_sql
            assert "[EmailAddress]" not in test.target_sql
            assert "CHECKSUM([CustomerID], [BalanceAmount])" in test.target_sql

    def test_numeric_key_sums(self, tests):
        agg = next(t for t in tests if "Aggregation Validation" in t.name)
        assert "SUM(CAST([CustID] AS FLOAT)) AS TotalSum" in agg.source_sql
        assert "TotalLength" in agg.target_sql

    def test_placeholders_without_schema(self):
        tests = ComprehensiveTestGenerator().generate("dbo.Customer", "Landing.Customer")
        assert len(tests) == 30
        white_box = next(t for t in tests if "White Box" in t.name)
        assert white_box.source_sql == (
            "SELECT TOP 100 [Column1], [Column2], [Column3]\nFROM [dbo].[Customer]\nORDER BY [ID]"
        )

    def test_count_only_when_checksum_unavailable(self):
        tests = ComprehensiveTestGenerator().generate(
            "crm.customer", "landing.customer", source_dialect="postgresql", target_dialect="postgresql",
        )
        full = next(t for t in tests if "Full Dataset Comparison" in t.name)
        assert full.source_sql == 'SELECT\n    COUNT(*) AS TotalRows\nFROM "crm"."customer"'

    def test_generator_runs_per_pair(self, customer_mappings):
        other = ColumnMapping("OrderId", "OrderId", source_table="dbo.Orders", target_table="Landing.Orders")
        context = GenerationContext(mappings=customer_mappings + [other])
        assert len(get_generator("comprehensive").generate_all(context)) == 60
