"""CLI entry point for the ETL mapping test generator.

Usage:
    python -m etlgen.cli generate mapping.csv
    python -m etlgen.cli generate mapping.csv --target-schema edw.json --target-dialect snowflake
    python -m etlgen.cli generate mapping.json --comprehensive --audit --output json:tests.json
    python -m etlgen.cli parse mapping.csv
    python -m etlgen.cli dialects

Sheets are read from CSV/TSV, or from JSON/YAML row lists exported from any
spreadsheet reader. Schema files are JSON/YAML payloads in the shape the
metadata service returns ({"tables": [{"name": ..., "columns": [...]}]}).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time

from etlgen.config import EngineConfig, load_config
from etlgen.dialects import get_dialect, list_dialects
from etlgen.engine import analyze
from etlgen.errors import ConfigError, SchemaFetchError, SheetLoadError
from etlgen.loader import load_rows, load_schema_file
from etlgen.parser import parse
from etlgen.report import output_report
from etlgen.schema import DatabaseSchema

logger = logging.getLogger("etlgen")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="etlgen",
        description="ETL mapping test generator: read a mapping sheet and emit paired source/target SQL tests.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate command
    generate_parser = subparsers.add_parser("generate", help="Generate test cases from a mapping sheet")
    generate_parser.add_argument("sheet", type=str, help="Mapping sheet file (.csv, .tsv, .json, .yaml)")
    generate_parser.add_argument(
        "--source-schema",
        type=str,
        default=None,
        help="Source database schema file (JSON/YAML)",
    )
    generate_parser.add_argument(
        "--target-schema",
        type=str,
        default=None,
        help="Target database schema file (JSON/YAML)",
    )
    generate_parser.add_argument(
        "--source-dialect",
        type=str,
        default=None,
        help=f"Source SQL dialect: {', '.join(list_dialects())} (or set ETLGEN_SOURCE_DIALECT)",
    )
    generate_parser.add_argument(
        "--target-dialect",
        type=str,
        default=None,
        help="Target SQL dialect (or set ETLGEN_TARGET_DIALECT)",
    )
    generate_parser.add_argument(
        "--pipeline",
        type=str,
        default=None,
        help="Pipeline name used by audit checks (or set ETLGEN_PIPELINE)",
    )
    generate_parser.add_argument(
        "--comprehensive",
        action="store_true",
        help="Also emit the 30-test comprehensive catalog per table pair",
    )
    generate_parser.add_argument(
        "--schema-validation",
        action="store_true",
        help="Also emit column count and data type consistency checks",
    )
    generate_parser.add_argument(
        "--audit",
        action="store_true",
        help="Also emit audit table and reject table checks per table pair",
    )
    generate_parser.add_argument(
        "--no-data-quality",
        action="store_true",
        help="Skip the rule-triggered data quality checks",
    )
    _add_common_arguments(generate_parser, default_output="markdown")

    # parse command
    parse_parser = subparsers.add_parser("parse", help="Show how a mapping sheet is read")
    parse_parser.add_argument("sheet", type=str, help="Mapping sheet file (.csv, .tsv, .json, .yaml)")
    _add_common_arguments(parse_parser, default_output="text")

    # dialects command
    subparsers.add_parser("dialects", help="List supported SQL dialects")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "generate":
        run_generate(args)
    elif args.command == "parse":
        run_parse(args)
    elif args.command == "dialects":
        run_list_dialects()


def _add_common_arguments(parser: argparse.ArgumentParser, default_output: str) -> None:
    parser.add_argument(
        "--config",
        type=str,
        default=os.environ.get("ETLGEN_CONFIG"),
        help="Path to an engine config YAML file (or set ETLGEN_CONFIG)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=os.environ.get("ETLGEN_OUTPUT", default_output),
        help=f"Output: stdout (JSON), json:<path>, markdown[:<path>], yaml[:<path>] (default: {default_output})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("ETLGEN_LOG_LEVEL", "info"),
        choices=["debug", "info", "warn", "error"],
        help="Log level (default: info)",
    )


def _configure_logging(level_name: str) -> None:
    level_name = "warning" if level_name == "warn" else level_name
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")


def _load_config_or_exit(args: argparse.Namespace) -> EngineConfig:
    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)
    if args.config:
        logger.info(f"Loaded config from {args.config}")
    return config


def _load_rows_or_exit(path: str) -> list[dict]:
    try:
        return load_rows(path)
    except SheetLoadError as e:
        logger.error(str(e))
        sys.exit(1)


def _load_schema_or_exit(path: str | None) -> DatabaseSchema | None:
    if not path:
        return None
    try:
        return load_schema_file(path)
    except SchemaFetchError as e:
        logger.error(str(e))
        sys.exit(1)


def run_generate(args: argparse.Namespace) -> None:
    """Run the full generation pipeline for one sheet."""
    _configure_logging(args.log_level)

    config = _load_config_or_exit(args)
    if args.source_dialect:
        config.source_dialect = args.source_dialect
    if args.target_dialect:
        config.target_dialect = args.target_dialect
    if args.pipeline:
        config.pipeline_name = args.pipeline
    if args.comprehensive:
        config.comprehensive = True
    if args.schema_validation:
        config.schema_validation = True
    if args.audit:
        config.audit = True
    if args.no_data_quality:
        config.data_quality = False

    rows = _load_rows_or_exit(args.sheet)
    source_schema = _load_schema_or_exit(args.source_schema)
    target_schema = _load_schema_or_exit(args.target_schema)

    logger.info(f"Dialects: {config.source_dialect} -> {config.target_dialect}")
    logger.info("Generating test cases...")
    start = time.time()
    analysis = analyze(rows, source_schema, target_schema, options=config)
    logger.info(f"Generated {len(analysis.test_cases)} test cases in {time.time() - start:.1f}s")

    if not analysis.test_cases:
        logger.warning("No test cases generated. Check the sheet's headers and column names.")

    output_report(analysis, args.output)


def run_parse(args: argparse.Namespace) -> None:
    """Print what the parser recovers from a sheet, without generating tests."""
    _configure_logging(args.log_level)

    config = _load_config_or_exit(args)
    rows = _load_rows_or_exit(args.sheet)
    parsed = parse(rows, config.header_scan_limit, config.extra_placeholders)

    if args.output.partition(":")[0] in ("stdout", "json", "yaml"):
        output_report(parsed, args.output)
        return

    print(f"Format:        {parsed.detected_format}")
    print(f"Confidence:    {parsed.format_confidence:.2f}")
    print(f"Rows:          {parsed.total_rows}")
    print(f"Source tables: {', '.join(parsed.source_tables) or '-'}")
    print(f"Target tables: {', '.join(parsed.target_tables) or '-'}")
    print(f"Mappings:      {len(parsed.column_mappings)}")
    for m in parsed.column_mappings:
        source = ".".join(p for p in (m.source_table, m.source_column) if p)
        target = ".".join(p for p in (m.target_table, m.target_column) if p)
        print(f"  {source} -> {target}  [{m.transformation_type}, {m.complexity}]")
    if parsed.transformation_rules:
        print(f"Rules:         {len(parsed.transformation_rules)}")
        for rule in parsed.transformation_rules:
            print(f"  {rule}")


def run_list_dialects() -> None:
    for name in list_dialects():
        dialect = get_dialect(name)
        aliases = f" (aliases: {', '.join(dialect.aliases)})" if dialect.aliases else ""
        print(f"  {name:<12} {dialect.quote('column')}{aliases}")


if __name__ == "__main__":
    main()
