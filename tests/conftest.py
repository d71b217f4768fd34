"""Shared pytest fixtures for the etlgen test suite."""

from __future__ import annotations

import pytest

from etlgen.models import ColumnMapping
from etlgen.schema import ColumnInfo, DatabaseSchema, TableInfo


# ---------------------------------------------------------------------------
# DuckDB fixture database (session-scoped, created once)
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def fixture_db_path(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Create the DuckDB fixture database and return its path."""
    from tests.fixtures.create_fixture import create_fixture

    db_dir = tmp_path_factory.mktemp("fixture")
    return create_fixture(str(db_dir / "pipeline.duckdb"))


@pytest.fixture(scope="session")
def duckdb_conn(fixture_db_path: str):
    """Session-scoped DuckDB connection to the fixture database."""
    import duckdb

    conn = duckdb.connect(fixture_db_path)
    yield conn
    conn.close()


# ---------------------------------------------------------------------------
# Synthetic data structures (no DB required)
# ---------------------------------------------------------------------------

@pytest.fixture
def standard_rows() -> list[dict]:
    """A small standard mapping sheet, as a spreadsheet reader returns it."""
    return [
        {"Source Field": "CustID", "Target Field": "CustomerID", "Transformation Logic": "Direct Move"},
        {"Source Field": "Name", "Target Field": "CustomerName", "Transformation Logic": "UPPER(Name)"},
        {"Source Field": "Email", "Target Field": "EmailAddress", "Transformation Logic": "TRIM(Email)"},
        {"Source Field": "Balance", "Target Field": "BalanceAmount", "Transformation Logic": "As Is"},
    ]


@pytest.fixture
def source_schema() -> DatabaseSchema:
    """Source system schema with a declared primary key."""
    return DatabaseSchema(tables=(
        TableInfo(
            schema="dbo",
            table_name="Customer",
            columns=(
                ColumnInfo(name="CustID", data_type="int", is_nullable=False),
                ColumnInfo(name="Name", data_type="nvarchar", max_length=100),
                ColumnInfo(name="Email", data_type="nvarchar", max_length=255),
                ColumnInfo(name="Balance", data_type="decimal(10,2)"),
            ),
            primary_key=("CustID",),
        ),
    ))


@pytest.fixture
def target_schema() -> DatabaseSchema:
    """Landing schema with the audit table present."""
    return DatabaseSchema(tables=(
        TableInfo(
            schema="Landing",
            table_name="Customer",
            columns=(
                ColumnInfo(name="CustomerID", data_type="int", is_nullable=False),
                ColumnInfo(name="CustomerName", data_type="nvarchar", max_length=100),
                ColumnInfo(name="EmailAddress", data_type="nvarchar", max_length=255),
                ColumnInfo(name="BalanceAmount", data_type="decimal(10,2)"),
            ),
        ),
        TableInfo(
            schema="Audit",
            table_name="PipelineExecutionAudit",
            columns=(
                ColumnInfo(name="PipelineExecutionAuditId", data_type="int"),
                ColumnInfo(name="Status", data_type="varchar"),
            ),
        ),
    ))


@pytest.fixture
def customer_mappings() -> list[ColumnMapping]:
    """Validated mappings for dbo.Customer -> Landing.Customer."""
    def mapping(src: str, tgt: str, kind: str = "direct_move", logic: str | None = None) -> ColumnMapping:
        return ColumnMapping(
            source_column=src,
            target_column=tgt,
            source_table="dbo.Customer",
            target_table="Landing.Customer",
            transformation_type=kind,
            transformation_logic=logic,
        )

    return [
        mapping("CustID", "CustomerID", logic="Direct Move"),
        mapping("Name", "CustomerName", "case_conversion", "UPPER(Name)"),
        mapping("Email", "EmailAddress", "trim", "TRIM(Email)"),
        mapping("Balance", "BalanceAmount", logic="As Is"),
    ]


ENTERPRISE_HEADERS = [
    "Sr No", "Source Schema", "Source Table", "Source Column", "Source Type",
    "Source Length", "Source Nullable", "Source Key", "Source Notes", "Load Type",
    "Target Database", "Target Schema", "Target Table", "Target Column", "Target Type",
    "Target Length", "Target Nullable", "Transformation Rule", "Comments",
]


@pytest.fixture
def enterprise_row():
    """Factory for rows of the fixed 19-column enterprise export (dbo -> Landing)."""
    def make(number: int, source_column: str, target_column: str, logic: str) -> dict:
        values = [
            str(number), "dbo", "Customer", source_column, "int", "4", "N", "Y", "", "Full",
            "EDW", "Landing", "Customer", target_column, "int", "4", "N", logic, "",
        ]
        return dict(zip(ENTERPRISE_HEADERS, values))

    return make
