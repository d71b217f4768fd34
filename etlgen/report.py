"""Report module: renders mapping analyses and writes them where ``--output`` says.

An output destination is ``<format>`` or ``<format>:<path>``:

    stdout | json       JSON on stdout
    json:tests.json     JSON file
    markdown[:path]     markdown report
    yaml[:path]         YAML document

Anything else falls back to JSON on stdout with a warning.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Callable

import yaml

logger = logging.getLogger(__name__)

MAX_SQL_TESTS = 50


def render_json(report: dict[str, Any]) -> str:
    return json.dumps(report, indent=2, default=str)


def render_yaml(report: dict[str, Any]) -> str:
    return yaml.safe_dump(report, sort_keys=False, allow_unicode=True).rstrip("\n")


def parse_destination(output: str) -> tuple[str, str | None]:
    """Split an output destination into (format, file path or None for stdout)."""
    fmt, _, path = output.partition(":")
    fmt = fmt.strip().lower()
    if fmt == "stdout":
        fmt = "json"
    if fmt not in RENDERERS:
        logger.warning(f"Unknown output '{output}', writing JSON to stdout")
        return "json", None
    return fmt, path.strip() or None


def output_report(report: Any, output: str = "stdout") -> None:
    """Render ``report`` (a dict, or anything with ``to_dict``) to its destination."""
    data = report if isinstance(report, dict) else report.to_dict()
    fmt, path = parse_destination(output)
    text = RENDERERS[fmt](data)
    if path is None:
        print(text)
        return
    Path(path).write_text(text + "\n", encoding="utf-8")
    print(f"Report written to {path}")


def render_markdown(report: dict[str, Any]) -> str:
    """Render a human-readable markdown summary of the generated tests."""
    lines: list[str] = []
    tests = report.get("test_cases", [])

    lines.append("# ETL Test Generation Report")
    lines.append("")
    lines.append(f"**Detected format:** {report.get('detected_format', 'Unknown')}")
    lines.append(f"**Format confidence:** {report.get('format_confidence', 0.0) * 100:.0f}%")
    lines.append(f"**Source tables:** {', '.join(report.get('source_tables', [])) or 'none'}")
    lines.append(f"**Target tables:** {', '.join(report.get('target_tables', [])) or 'none'}")
    lines.append(f"**Mappings:** {len(report.get('mappings', []))}")
    lines.append("")

    if report.get("business_rules"):
        lines.append("## Summary")
        lines.append("")
        for rule in report["business_rules"]:
            lines.append(f"- {rule}")
        lines.append("")

    # Counts by category and severity
    category_counts = Counter(t["category"] for t in tests)
    if category_counts:
        lines.append("## Tests by Category")
        lines.append("")
        lines.append("| Category | Count |")
        lines.append("|---|---|")
        for category, count in sorted(category_counts.items(), key=lambda x: -x[1]):
            lines.append(f"| {category} | {count} |")
        lines.append("")

    severity_counts = Counter(t["severity"] for t in tests)
    if severity_counts:
        lines.append("## Tests by Severity")
        lines.append("")
        lines.append("| Severity | Count |")
        lines.append("|---|---|")
        for severity in ["critical", "major", "minor"]:
            lines.append(f"| {severity.capitalize()} | {severity_counts.get(severity, 0)} |")
        lines.append("")

    # Mapping table
    mappings = report.get("mappings", [])
    if mappings:
        lines.append("## Mappings")
        lines.append("")
        lines.append("| Source | Target | Type | Complexity |")
        lines.append("|---|---|---|---|")
        for m in mappings:
            source = ".".join(p for p in (m.get("source_table"), m["source_column"]) if p)
            target = ".".join(p for p in (m.get("target_table"), m["target_column"]) if p)
            lines.append(f"| {source} | {target} | {m['transformation_type']} | {m['complexity']} |")
        lines.append("")

    # Test SQL
    if tests:
        lines.append("## Test Cases")
        lines.append("")
        for i, t in enumerate(tests[:MAX_SQL_TESTS]):
            lines.append(f"### {i + 1}. {t['name']}")
            lines.append("")
            lines.append(f"*{t['category']} / {t['severity']}* -- {t['description']}")
            lines.append("")
            lines.append(f"```sql\n-- source\n{t['source_sql'].strip()}\n```")
            lines.append(f"```sql\n-- target\n{t['target_sql'].strip()}\n```")
            lines.append(f"**Expected:** {t['expected_result']}")
            lines.append("")
        if len(tests) > MAX_SQL_TESTS:
            lines.append(f"*{len(tests) - MAX_SQL_TESTS} additional test cases not shown.*")
            lines.append("")

    lines.append(f"**Total test cases:** {len(tests)}")
    lines.append("")
    return "\n".join(lines)


RENDERERS: dict[str, Callable[[dict[str, Any]], str]] = {
    "json": render_json,
    "markdown": render_markdown,
    "yaml": render_yaml,
}
