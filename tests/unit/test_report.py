"""Tests for report rendering: output_report and render_markdown."""

import json

import yaml

from etlgen.engine import analyze
from etlgen.models import TestCase
from etlgen.report import MAX_SQL_TESTS, output_report, parse_destination, render_markdown


def _test_dict(i: int, severity: str = "major") -> dict:
    return TestCase(
        name=f"Check {i}",
        description="rows agree",
        source_sql="SELECT 1 ",
        target_sql="SELECT 1",
        expected_result="Counts match",
        category="general",
        severity=severity,
    ).to_dict()


class TestRenderMarkdown:

    def test_header_fields(self, standard_rows):
        md = render_markdown(analyze(standard_rows).to_dict())
        assert md.startswith("# ETL Test Generation Report\n")
        assert "**Format confidence:** 90%" in md
        assert "**Source tables:** none" in md
        assert "**Mappings:** 4" in md

    def test_sections(self, standard_rows):
        md = render_markdown(analyze(standard_rows).to_dict())
        for heading in ("## Summary", "## Tests by Category", "## Tests by Severity", "## Mappings", "## Test Cases"):
            assert heading in md
        assert "- Analyzed 4 rows from mapping sheet" in md
        assert "| Name | CustomerName | case_conversion | medium |" in md
        assert md.rstrip().endswith("**Total test cases:** 11")

    def test_sql_blocks(self):
        md = render_markdown({"test_cases": [_test_dict(1)]})
        assert "### 1. Check 1" in md
        assert "*general / major* -- rows agree" in md
        assert "```sql\n-- source\nSELECT 1\n```" in md
        assert "**Expected:** Counts match" in md

    def test_severity_rows_always_listed(self):
        md = render_markdown({"test_cases": [_test_dict(1, "critical")]})
        assert "| Critical | 1 |" in md
        assert "| Major | 0 |" in md
        assert "| Minor | 0 |" in md

    def test_test_cases_capped(self):
        tests = [_test_dict(i) for i in range(MAX_SQL_TESTS + 3)]
        md = render_markdown({"test_cases": tests})
        assert f"### {MAX_SQL_TESTS}. Check {MAX_SQL_TESTS - 1}" in md
        assert f"### {MAX_SQL_TESTS + 1}." not in md
        assert "*3 additional test cases not shown.*" in md
        assert f"**Total test cases:** {MAX_SQL_TESTS + 3}" in md

    def test_empty_report(self):
        md = render_markdown({})
        assert "## Test Cases" not in md
        assert "**Total test cases:** 0" in md


class TestOutputReport:

    def test_stdout_json(self, capsys):
        output_report({"detected_format": "Standard"}, "stdout")
        assert json.loads(capsys.readouterr().out) == {"detected_format": "Standard"}

    def test_json_file(self, tmp_path, capsys):
        path = tmp_path / "report.json"
        output_report({"test_cases": []}, f"json:{path}")
        assert json.loads(path.read_text()) == {"test_cases": []}
        assert f"Report written to {path}" in capsys.readouterr().out

    def test_markdown(self, capsys):
        output_report({"test_cases": []}, "markdown")
        assert capsys.readouterr().out.startswith("# ETL Test Generation Report")

    def test_unknown_output_falls_back_to_json(self, capsys):
        output_report({"a": 1}, "xml")
        assert json.loads(capsys.readouterr().out) == {"a": 1}

    def test_accepts_analysis_object(self, standard_rows, capsys):
        output_report(analyze(standard_rows), "stdout")
        assert len(json.loads(capsys.readouterr().out)["test_cases"]) == 11

    def test_markdown_file(self, tmp_path, capsys):
        path = tmp_path / "report.md"
        output_report({"test_cases": []}, f"markdown:{path}")
        assert path.read_text().startswith("# ETL Test Generation Report")
        assert f"Report written to {path}" in capsys.readouterr().out

    def test_yaml_stdout(self, capsys):
        output_report({"detected_format": "Standard", "test_cases": []}, "yaml")
        assert yaml.safe_load(capsys.readouterr().out) == {"detected_format": "Standard", "test_cases": []}


class TestParseDestination:

    def test_known_formats(self):
        assert parse_destination("stdout") == ("json", None)
        assert parse_destination("json:out/tests.json") == ("json", "out/tests.json")
        assert parse_destination("Markdown") == ("markdown", None)
        assert parse_destination("yaml:r.yaml") == ("yaml", "r.yaml")

    def test_unknown_format_is_stdout_json(self):
        assert parse_destination("xml:r.xml") == ("json", None)
