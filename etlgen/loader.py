"""Sheet and schema file loading for the CLI.

Mapping sheets are read as a list of row dicts, exactly the shape the parser
accepts from any spreadsheet reader:

    .csv / .tsv   first line is the header; blank or repeated header cells
                  get reader-style names (column_3, Name_2)
    .json         a list of objects, or {"rows": [...]}
    .yaml / .yml  same shapes as JSON
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from etlgen.errors import SchemaFetchError, SheetLoadError
from etlgen.schema import DatabaseSchema, schema_from_payload

logger = logging.getLogger(__name__)


def _header_names(raw: list[str]) -> list[str]:
    names: list[str] = []
    seen: dict[str, int] = {}
    for i, cell in enumerate(raw):
        name = cell.strip() or f"column_{i + 1}"
        count = seen.get(name.lower(), 0)
        seen[name.lower()] = count + 1
        names.append(name if count == 0 else f"{name}_{count + 1}")
    return names


def _read_delimited(path: Path, delimiter: str) -> list[dict[str, Any]]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f, delimiter=delimiter)
        header = next(reader, None)
        if header is None:
            return []
        names = _header_names(header)
        rows: list[dict[str, Any]] = []
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            while len(names) < len(record):
                names.append(f"column_{len(names) + 1}")
            rows.append({names[i]: (record[i] if i < len(record) else "") for i in range(len(names))})
        return rows


def _read_structured(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def load_rows(path: Path | str) -> list[dict[str, Any]]:
    """Read a mapping sheet file into row dicts.

    Raises:
        SheetLoadError: when the file is missing, unreadable or of an
            unsupported type.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            rows = _read_delimited(path, ",")
        elif suffix == ".tsv":
            rows = _read_delimited(path, "\t")
        elif suffix in (".json", ".yaml", ".yml"):
            data = _read_structured(path)
            if isinstance(data, dict):
                data = data.get("rows")
            if not isinstance(data, list):
                raise SheetLoadError(f"{path}: expected a list of rows or {{'rows': [...]}}")
            rows = [r for r in data if isinstance(r, dict)]
        else:
            raise SheetLoadError(f"{path}: unsupported sheet type '{suffix or '(none)'}'")
    except (OSError, UnicodeDecodeError, csv.Error, json.JSONDecodeError, yaml.YAMLError) as e:
        raise SheetLoadError(f"Cannot read sheet {path}: {e}") from e

    logger.info(f"Loaded {len(rows)} rows from {path.name}")
    return rows


def load_schema_file(path: Path | str) -> DatabaseSchema:
    """Read a schema payload (JSON or YAML) into a DatabaseSchema.

    Raises:
        SchemaFetchError: when the file is unreadable or has no table list.
    """
    path = Path(path)
    try:
        payload = _read_structured(path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise SchemaFetchError(f"Cannot read schema file {path}: {e}", connection_id=str(path)) from e
    schema = schema_from_payload(payload)
    logger.info(f"Loaded schema from {path.name}: {schema.total_tables} tables, {schema.total_columns} columns")
    return schema
