"""Engine: sheet rows in, MappingAnalysis out.

    rows -> parse -> validate against schemas -> mapping-driven generator
         -> enabled optional generators -> MappingAnalysis

The engine never raises on sheet content. Each generator call is isolated:
an unexpected failure is logged and that generator contributes no tests.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable

from etlgen.catalog import SchemaCatalog, job_fetcher
from etlgen.config import EngineConfig
from etlgen.dialects import get_dialect
from etlgen.generators import GenerationContext, get_generator
from etlgen.generators.base import is_usable_column_name
from etlgen.generators.mapping import MappingTestGenerator
from etlgen.models import ColumnMapping, MappingAnalysis
from etlgen.parser import parse
from etlgen.rules import DEFAULT_SOURCE_TABLE, DEFAULT_TARGET_TABLE
from etlgen.schema import DatabaseSchema, find_column, find_table

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No mapping data provided"


def column_exists(schema: DatabaseSchema | None, table_name: str | None, column: str) -> bool:
    """Whether the column exists. Fail-open: unknown schema or table counts as present."""
    if schema is None or not table_name or not column:
        return True
    table = find_table(schema, table_name)
    if table is None:
        return True
    return find_column(table, column) is not None


def validate_mappings(
    mappings: list[ColumnMapping],
    source_schema: DatabaseSchema | None = None,
    target_schema: DatabaseSchema | None = None,
    default_source_table: str = DEFAULT_SOURCE_TABLE,
    default_target_table: str = DEFAULT_TARGET_TABLE,
) -> list[ColumnMapping]:
    """Drop mappings with unusable names or columns missing from a known table."""
    valid: list[ColumnMapping] = []
    for m in mappings:
        if not (is_usable_column_name(m.source_column) and is_usable_column_name(m.target_column)):
            continue
        source_table = m.source_table or default_source_table
        target_table = m.target_table or default_target_table
        if not column_exists(source_schema, source_table, m.source_column):
            logger.debug(f"Dropping mapping: {source_table}.{m.source_column} not in source schema")
            continue
        if not column_exists(target_schema, target_table, m.target_column):
            logger.debug(f"Dropping mapping: {target_table}.{m.target_column} not in target schema")
            continue
        valid.append(m)
    return valid


def build_catalog(fetcher: Callable[[str], Any], options: EngineConfig | None = None) -> SchemaCatalog:
    """A SchemaCatalog using the configured cache TTL."""
    config = options or EngineConfig()
    return SchemaCatalog(fetcher, ttl_seconds=config.cache_ttl_seconds)


def build_job_catalog(
    submit: Callable[[str], str],
    get_job: Callable[[str], dict[str, Any]],
    options: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> SchemaCatalog:
    """A SchemaCatalog whose fetches run as polled background jobs."""
    config = options or EngineConfig()
    fetcher = job_fetcher(
        submit, get_job,
        interval=config.poll_interval_seconds,
        timeout=config.poll_timeout_seconds,
        cancel=cancel,
    )
    return build_catalog(fetcher, config)


def resolve_schemas(
    catalog: SchemaCatalog | None,
    source_connection_id: str | None = None,
    target_connection_id: str | None = None,
) -> tuple[DatabaseSchema | None, DatabaseSchema | None]:
    """Fetch both sides' schemas through the catalog. Failures resolve to None."""
    if catalog is None:
        return None, None
    return catalog.fetch_schema_or_none(source_connection_id), catalog.fetch_schema_or_none(target_connection_id)


def analyze(
    rows: Iterable[Any] | None,
    source_schema: DatabaseSchema | None = None,
    target_schema: DatabaseSchema | None = None,
    pipeline_name: str | None = None,
    source_dialect: str | None = None,
    target_dialect: str | None = None,
    options: EngineConfig | None = None,
) -> MappingAnalysis:
    """Analyze one mapping sheet and generate its test catalog.

    Explicit arguments override the matching ``options`` fields.
    """
    config = options or EngineConfig()
    pipeline = pipeline_name or config.pipeline_name
    src_dialect = get_dialect(source_dialect or config.source_dialect)
    tgt_dialect = get_dialect(target_dialect or config.target_dialect)

    rows = list(rows or [])
    parsed = parse(rows, config.header_scan_limit, config.extra_placeholders)
    if not rows:
        return MappingAnalysis(
            business_rules=[NO_DATA_MESSAGE],
            detected_format=parsed.detected_format,
            format_confidence=parsed.format_confidence,
        )

    default_source = next(iter(parsed.source_tables), DEFAULT_SOURCE_TABLE)
    default_target = next(iter(parsed.target_tables), DEFAULT_TARGET_TABLE)
    validated = validate_mappings(
        parsed.column_mappings, source_schema, target_schema, default_source, default_target,
    )
    logger.info(
        f"Parsed {parsed.total_rows} rows as '{parsed.detected_format}': "
        f"{len(parsed.column_mappings)} mappings, {len(validated)} validated"
    )

    try:
        analysis = MappingTestGenerator(config.audit_names()).generate(
            validated, source_schema, target_schema, pipeline,
            src_dialect, tgt_dialect, default_source, default_target,
            total_rows=parsed.total_rows,
        )
    except Exception as e:
        logger.warning(f"Mapping generator failed: {e}")
        analysis = MappingAnalysis(mappings=validated)

    context = GenerationContext(
        mappings=validated,
        source_schema=source_schema,
        target_schema=target_schema,
        pipeline_name=pipeline,
        source_dialect=src_dialect,
        target_dialect=tgt_dialect,
        default_source_table=default_source,
        default_target_table=default_target,
        audit=config.audit_names(),
    )
    for name in config.enabled_generators():
        try:
            tests = get_generator(name).generate_all(context)
        except Exception as e:
            logger.warning(f"Generator '{name}' failed: {e}")
            continue
        logger.debug(f"Generator '{name}' contributed {len(tests)} tests")
        analysis.test_cases.extend(tests)

    analysis.source_tables = list(parsed.source_tables)
    analysis.target_tables = list(parsed.target_tables)
    analysis.detected_format = parsed.detected_format
    analysis.format_confidence = parsed.format_confidence
    logger.info(f"Generated {len(analysis.test_cases)} test cases")
    return analysis
