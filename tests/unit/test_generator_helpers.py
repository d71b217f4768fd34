"""Tests for shared generator helpers (etlgen/generators/base.py)."""

import pytest

from etlgen.generators.base import (
    EDW_LANDING_TO_EDW,
    LANDING_TO_STAGE,
    SOURCE_TO_LANDING,
    STAGE_TO_EDW_LANDING,
    GenerationContext,
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
from etlgen.models import ColumnMapping
from etlgen.schema import TableInfo


class TestIdentifiers:

    def test_table_key_ignores_case_and_quoting(self):
        assert table_key("[dbo].[Customer]") == table_key("DBO.CUSTOMER") == table_key("dbo.customer")

    def test_table_key_ignores_separators(self):
        assert table_key("Landing.Customer_Master") == table_key("landing.customer master")

    def test_normalize_identifier(self):
        assert normalize_identifier("[dbo].[Customer].[Cust ID]") == "Cust ID"
        assert normalize_identifier("Email") == "Email"
        assert normalize_identifier(None) == ""

    @pytest.mark.parametrize("name", [None, "", "Unknown", "Column", "column_3", "N/A", "[Auto-detected] Source", "[Configure me]"])
    def test_unusable_column_names(self, name):
        assert is_usable_column_name(name) is False

    def test_usable_column_name(self):
        assert is_usable_column_name("CustID") is True

    def test_safe_alias_is_unique(self):
        used: set[str] = set()
        assert make_safe_alias("Cust ID", used, "col1") == "Cust_ID"
        assert make_safe_alias("cust id", used, "col2") == "cust_id_2"
        assert make_safe_alias("", used, "col3") == "col3"

    def test_safe_alias_uses_last_segment(self):
        assert make_safe_alias("dbo.Customer.Name", set(), "c") == "Name"


class TestSplitTable:

    def test_schema_and_table(self):
        assert split_table("dbo.Customer") == ("dbo", "Customer")

    def test_database_prefix_dropped(self):
        assert split_table("crm.dbo.Customer") == ("dbo", "Customer")

    def test_quoted(self):
        assert split_table("[Landing].[Customer]") == ("Landing", "Customer")

    def test_bare_name_defaults_to_dbo(self):
        assert split_table("Customer") == ("dbo", "Customer")

    def test_bare_name_uses_discovered_schema(self):
        assert split_table("Customer", TableInfo(schema="sales", table_name="Customer")) == ("sales", "Customer")


class TestResolveColumnName:

    def test_schema_spelling_wins(self, source_schema):
        assert resolve_column_name(source_schema, "dbo.Customer", "custid") == "CustID"

    def test_without_schema(self):
        assert resolve_column_name(None, "dbo.Customer", "[Email]") == "Email"

    def test_unknown_column_kept(self, source_schema):
        assert resolve_column_name(source_schema, "dbo.Customer", "Phone") == "Phone"


class TestPhases:

    @pytest.mark.parametrize("source, target, expected", [
        ("dbo.Customer", "Landing.Customer", SOURCE_TO_LANDING),
        ("Landing.Customer", "Stage.Customer", LANDING_TO_STAGE),
        ("Stage.Customer", "EDWLanding.Customer", STAGE_TO_EDW_LANDING),
        ("dbo.Customer", "EDWLanding.Customer", STAGE_TO_EDW_LANDING),
        ("EDWLanding.Customer", "EDW.DimCustomer", EDW_LANDING_TO_EDW),
        (None, None, SOURCE_TO_LANDING),
    ])
    def test_phase_label(self, source, target, expected):
        assert phase_label(source, target) == expected

    @pytest.mark.parametrize("targets, expected", [
        (["Landing.Customer"], 1),
        (["EDWLanding.Customer"], 2),
        (["EDW_Landing.Customer"], 2),
        (["Stage.Customer", "Landing.Orders"], 2),
        (["EDW.DimCustomer"], 3),
        (["dbo.Customer"], None),
        ([], None),
    ])
    def test_phase_number(self, targets, expected):
        assert phase_number(targets) == expected


class TestBusinessRuleExpression:

    @pytest.mark.parametrize("logic, expected", [
        (None, "s.[Name]"),
        ("Direct Move", "s.[Name]"),
        ("UPPER(Name)", "UPPER(s.[Name])"),
        ("upper(trim(Name))", "UPPER(s.[Name])"),
        ("LOWER(Name)", "LOWER(s.[Name])"),
        ("LTRIM(RTRIM(Name))", "LTRIM(RTRIM(s.[Name]))"),
        ("TRIM(Name)", "TRIM(s.[Name])"),
        ("ISNULL(Name, 'N/A')", "COALESCE(s.[Name], 'N/A')"),
        ("COALESCE(Name, 0)", "COALESCE(s.[Name], 0)"),
        ("CAST(Name AS DECIMAL(10,2))", "CAST(s.[Name] AS DECIMAL(10,2))"),
        ("CAST(Name AS INT)", "CAST(s.[Name] AS INT)"),
        ("ROUND(Name, 2)", "ROUND(s.[Name], 2)"),
        ("CASE WHEN Name IS NULL THEN 'X' END", "s.[Name]"),
    ])
    def test_patterns(self, logic, expected):
        assert build_business_rule_expression(logic, "s.[Name]") == expected


class TestGenerationContext:

    def test_table_pairs_deduplicate_case_insensitively(self):
        context = GenerationContext(mappings=[
            ColumnMapping("a", "b", source_table="[dbo].[Customer]", target_table="Landing.Customer"),
            ColumnMapping("c", "d", source_table="dbo.customer", target_table="LANDING.CUSTOMER"),
            ColumnMapping("e", "f"),
        ])
        assert context.table_pairs() == [
            ("[dbo].[Customer]", "Landing.Customer"),
            ("SourceTable", "TargetTable"),
        ]

    def test_default_dialects(self):
        context = GenerationContext()
        assert context.source_dialect.name == "mssql"
        assert context.target_dialect.name == "mssql"
