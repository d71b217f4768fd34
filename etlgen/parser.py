"""Mapping sheet parser: recovers column mappings from sheets of any layout.

Mapping sheets come in many shapes. The parser does not trust any of them:

    1. Header discovery: the first rows are scored for ETL vocabulary and the
       best one becomes the header. Title rows above it are dropped. When the
       labels live in the row's values (the reader produced ``column_1``-style
       keys), those values are promoted to header names.
    2. Strategy selection: five extraction strategies run independently and
       the most confident result wins. Earlier strategies win ties.

           standard           per-row source/target columns, found by scoring
                              header names (or the fixed 19-column enterprise
                              export, read by position)
           multi-source       one target column fed by several system columns
           transformation     a catalog of rules, no column mappings
           vertical           re-dispatch to standard
           generic            always succeeds, confidence 0.05

    3. Placeholder filtering: "n/a", "-", "tbd", bare role words and
       auto-generated names never become mappings.

``parse`` never raises on sheet content. A low ``format_confidence`` is the
signal that the sheet's headers need attention.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any, Callable

from etlgen import classifier
from etlgen.dialects import split_name, strip_identifier
from etlgen.models import ColumnMapping, ParsedMappingSheet
from etlgen.rules import (
    AUTO_HEADER_PATTERN,
    ENTERPRISE_COLUMN_COUNT,
    ENTERPRISE_CONFIDENCE,
    ENTERPRISE_POSITIONS,
    GENERIC_CONFIDENCE,
    HEADER_KEY_WEIGHT,
    HEADER_KEYWORDS,
    HEADER_SCAN_LIMIT,
    HEADER_VALUE_WEIGHT,
    MIN_STANDARD_CONFIDENCE,
    MULTI_SOURCE_ANNOTATIONS,
    MULTI_SOURCE_CONFIDENCE,
    MULTI_SOURCE_TARGET_KEYWORDS,
    MULTI_SOURCE_TARGET_TABLE,
    PLACEHOLDER_TOKENS,
    ROLE_CONFIDENCE,
    ROLE_KEYWORDS,
    ROLE_ORDER,
    ROLE_WORDS,
    RULE_CATALOG_CONFIDENCE,
    RULE_DESCRIPTION_KEYWORDS,
    RULE_ID_KEYWORDS,
    RULE_SYNTAX_KEYWORDS,
    SCORE_AFFIX,
    SCORE_CONTAINED,
    SCORE_CONTAINS,
    SCORE_EXACT,
    SCORE_THRESHOLD,
    VERTICAL_MARKERS,
)
from etlgen.sheet import SheetRow, is_unknown_header, labels_from_row, normalize_rows

logger = logging.getLogger(__name__)

STANDARD_FORMAT = "Standard Mapping (Scored)"
ENTERPRISE_FORMAT = "Enterprise Mapping (19-col)"
MULTI_SOURCE_FORMAT = "Multi-Source (Multiple systems -> Single target)"
RULE_CATALOG_FORMAT = "Transformation Rules (Rule definitions)"
GENERIC_FORMAT = "Generic (Uncertain format)"

_SEPARATORS = re.compile(r"[_\s-]")
_MAX_LABEL_WORDS = 5


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def parse(
    rows: Iterable[Any] | None,
    header_scan_limit: int = HEADER_SCAN_LIMIT,
    extra_placeholders: Iterable[str] = (),
) -> ParsedMappingSheet:
    """Parse raw sheet rows into a ParsedMappingSheet.

    Args:
        rows: Sequence of mappings from header name to cell value.
        header_scan_limit: How many leading rows may hold the real header.
        extra_placeholders: Additional tokens to treat as "no value".
    """
    sheet = normalize_rows(rows)
    if not sheet:
        return _generic([], [])

    start, promote = find_header_row(sheet, header_scan_limit)
    effective = sheet[start:]
    if promote:
        labels = labels_from_row(effective[0])
        effective = [row.relabel(labels) for row in effective[1:]]
    logger.debug(f"Header discovery: row {start} (promoted labels: {promote})")
    if not effective:
        return _generic([], [])

    columns = effective[0].headers
    placeholders = PLACEHOLDER_TOKENS | {t.strip().lower() for t in extra_placeholders}

    results = [r for r in (s(effective, columns, placeholders) for s in STRATEGIES) if r is not None]
    # max() keeps the first of equal results, so earlier strategies win ties.
    best = max(results, key=lambda r: r.format_confidence, default=_generic(effective, columns))

    logger.debug(
        f"Selected format '{best.detected_format}' (confidence {best.format_confidence:.2f}, "
        f"{len(best.column_mappings)} mappings)"
    )
    return best


# ---------------------------------------------------------------------------
# Header discovery
# ---------------------------------------------------------------------------

def _mentions_keyword(text: str) -> bool:
    lower = text.lower()
    return any(kw in lower for kw in HEADER_KEYWORDS)


def _looks_like_label(text: str) -> bool:
    return bool(text) and "(" not in text and len(text.split()) <= _MAX_LABEL_WORDS


def _keys_are_headers(row: SheetRow) -> bool:
    headers = row.headers
    named = sum(1 for h in headers if not is_unknown_header(h))
    return named * 2 > len(headers) and any(_mentions_keyword(h) for h in headers)


def score_header_row(row: SheetRow) -> tuple[int, int]:
    """Return (total score, value-label hits) for a candidate header row."""
    key_hits = sum(1 for h in row.headers if _mentions_keyword(h))
    value_hits = sum(
        1 for cell in row.values()
        if cell.kind == "text" and _looks_like_label(cell.text) and _mentions_keyword(cell.text)
    )
    return key_hits * HEADER_KEY_WEIGHT + value_hits * HEADER_VALUE_WEIGHT, value_hits


def find_header_row(rows: list[SheetRow], limit: int = HEADER_SCAN_LIMIT) -> tuple[int, bool]:
    """Index of the best-scoring header row, and whether to promote its values.

    Keys that are mostly real names with ETL vocabulary are the header and
    nothing is promoted; data values that happen to mention a keyword
    ("SourceSystemCode") must not replace them. Otherwise values are promoted
    when they carry more of the row's score than its keys.
    """
    if rows and _keys_are_headers(rows[0]):
        return 0, False
    best_idx, best_score, best_value_hits = 0, 0, 0
    for idx, row in enumerate(rows[:limit]):
        score, value_hits = score_header_row(row)
        if score > best_score:
            best_idx, best_score, best_value_hits = idx, score, value_hits
    key_score = best_score - best_value_hits * HEADER_VALUE_WEIGHT
    promote = best_value_hits > 0 and best_value_hits * HEADER_VALUE_WEIGHT > key_score
    return best_idx, promote


# ---------------------------------------------------------------------------
# Header scoring
# ---------------------------------------------------------------------------

def _norm(text: str) -> str:
    return _SEPARATORS.sub("", text.lower())


def score_header(header: str, keywords: Iterable[str]) -> float:
    """Sum of per-keyword match scores for one header name."""
    normalized = _norm(header)
    if not normalized:
        return 0.0
    score = 0.0
    for kw in keywords:
        nkw = _norm(kw)
        if normalized == nkw:
            score += SCORE_EXACT
        elif normalized.startswith(nkw) or normalized.endswith(nkw):
            score += SCORE_AFFIX
        elif nkw in normalized:
            score += SCORE_CONTAINS
        elif normalized in nkw:
            score += SCORE_CONTAINED
    return score


def assign_roles(columns: list[str]) -> dict[str, str]:
    """Pick the best header for each role. A header is claimed at most once."""
    roles: dict[str, str] = {}
    claimed: set[str] = set()
    candidates = [c for c in columns if not is_unknown_header(c)]
    for role in ROLE_ORDER:
        best, best_score = None, 0.0
        for col in candidates:
            if col in claimed:
                continue
            score = score_header(col, ROLE_KEYWORDS[role])
            if score > best_score:
                best, best_score = col, score
        if best is not None and best_score > SCORE_THRESHOLD:
            roles[role] = best
            claimed.add(best)
    return roles


def find_header(columns: list[str], keywords: Iterable[str]) -> str | None:
    """First header matching any keyword: exact, then affix, then containment."""
    candidates = [(c, _norm(c)) for c in columns if not is_unknown_header(c)]
    normalized_keywords = [_norm(k) for k in keywords]
    passes: tuple[Callable[[str, str], bool], ...] = (
        lambda col, kw: col == kw,
        lambda col, kw: col.startswith(kw) or col.endswith(kw),
        lambda col, kw: kw in col,
        lambda col, kw: col in kw,
    )
    for matches in passes:
        for col, normalized in candidates:
            if normalized and any(kw and matches(normalized, kw) for kw in normalized_keywords):
                return col
    return None


# ---------------------------------------------------------------------------
# Value cleaning
# ---------------------------------------------------------------------------

def clean_identifier(value: str) -> str:
    """Strip list punctuation and string-literal quotes from a cell value."""
    text = value.strip().strip(":=").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] == "'":
        text = text[1:-1].strip()
    return text


def resolve_column(value: str) -> str:
    """Column name from a cell: ``[db].[dbo].[Customer].[Cust ID]`` -> ``Cust ID``."""
    parts = [strip_identifier(p) for p in split_name(clean_identifier(value))]
    parts = [p for p in parts if p]
    return parts[-1] if parts else ""


def is_placeholder(value: str, placeholders: frozenset[str] | set[str] = PLACEHOLDER_TOKENS) -> bool:
    normalized = " ".join(value.lower().split())
    if normalized in placeholders or normalized in ROLE_WORDS:
        return True
    return bool(AUTO_HEADER_PATTERN.match(normalized))


def _cell(row: SheetRow, header: str | None) -> str:
    text = row.text(header)
    return "" if text == "-" else text


# ---------------------------------------------------------------------------
# Result building
# ---------------------------------------------------------------------------

class _Collector:
    """Accumulates mappings, deduplicating on the composite logical key."""

    def __init__(self) -> None:
        self.source_tables: dict[str, None] = {}
        self.target_tables: dict[str, None] = {}
        self.mappings: list[ColumnMapping] = []
        self.rules: list[str] = []
        self._seen: set[tuple[str, str, str, str]] = set()

    def add(self, mapping: ColumnMapping) -> bool:
        if mapping.source_table:
            self.source_tables[mapping.source_table] = None
        if mapping.target_table:
            self.target_tables[mapping.target_table] = None
        key = (
            (mapping.source_table or "").lower(),
            (mapping.target_table or "").lower(),
            mapping.source_column.lower(),
            mapping.target_column.lower(),
        )
        if key in self._seen:
            return False
        self._seen.add(key)
        self.mappings.append(mapping)
        if mapping.transformation_logic:
            self.rules.append(mapping.transformation_logic)
        return True

    def result(self, fmt: str, rows: list[SheetRow], columns: list[str], confidence: float) -> ParsedMappingSheet:
        return ParsedMappingSheet(
            source_tables=self.source_tables,
            target_tables=self.target_tables,
            column_mappings=self.mappings,
            detected_format=fmt,
            transformation_rules=self.rules,
            total_rows=len(rows),
            detected_columns=list(columns),
            format_confidence=round(confidence, 4),
        )


def _mapping(source: str, target: str, source_table: str, target_table: str, logic: str) -> ColumnMapping:
    return ColumnMapping(
        source_column=source,
        target_column=target,
        source_table=source_table or None,
        target_table=target_table or None,
        transformation_type=classifier.classify(logic),
        transformation_logic=logic or None,
        complexity=classifier.assess_complexity(logic),
    )


# ---------------------------------------------------------------------------
# Strategy 1: standard / enterprise
# ---------------------------------------------------------------------------

def parse_standard(rows: list[SheetRow], columns: list[str], placeholders: set[str]) -> ParsedMappingSheet | None:
    enterprise = len(columns) == ENTERPRISE_COLUMN_COUNT
    if enterprise:
        headers = {role: columns[pos] for role, pos in ENTERPRISE_POSITIONS.items()}
        confidence = ENTERPRISE_CONFIDENCE
    else:
        headers = assign_roles(columns)
        if "source_column" not in headers and "target_column" not in headers:
            return None
        confidence = sum(weight for role, weight in ROLE_CONFIDENCE.items() if role in headers)
        if round(confidence, 4) < MIN_STANDARD_CONFIDENCE:
            return None

    collector = _Collector()
    fill: dict[str, str] = {}
    side_roles = {
        "source": ("source_db", "source_schema", "source_table"),
        "target": ("target_db", "target_schema", "target_table"),
    }

    for row in rows:
        # Fill-down happens on every row, so block-header rows count too
        for roles in side_roles.values():
            for role in roles:
                value = _cell(row, headers.get(role))
                if value:
                    fill[role] = value

        source = resolve_column(_cell(row, headers.get("source_column")))
        target = resolve_column(_cell(row, headers.get("target_column")))
        if not source or not target:
            continue
        if is_placeholder(source, placeholders) or is_placeholder(target, placeholders):
            continue

        source_table = ".".join(fill[r] for r in side_roles["source"] if fill.get(r))
        target_table = ".".join(fill[r] for r in side_roles["target"] if fill.get(r))
        logic = _cell(row, headers.get("transform"))
        collector.add(_mapping(source, target, source_table, target_table, logic))

    fmt = ENTERPRISE_FORMAT if enterprise else STANDARD_FORMAT
    return collector.result(fmt, rows, columns, confidence)


# ---------------------------------------------------------------------------
# Strategy 2: multi-source fan-in
# ---------------------------------------------------------------------------

def parse_multi_source(rows: list[SheetRow], columns: list[str], placeholders: set[str]) -> ParsedMappingSheet | None:
    target_col = find_header(columns, MULTI_SOURCE_TARGET_KEYWORDS)
    if target_col is None:
        return None

    source_cols = [
        c for c in columns
        if c != target_col
        and not is_unknown_header(c)
        and not any(a in c.lower() for a in MULTI_SOURCE_ANNOTATIONS)
    ]
    if len(source_cols) < 2:
        return None

    collector = _Collector()
    for col in source_cols:
        collector.source_tables[col] = None
    collector.target_tables[MULTI_SOURCE_TARGET_TABLE] = None

    for row in rows:
        target = resolve_column(_cell(row, target_col))
        if not target or is_placeholder(target, placeholders):
            continue
        for col in source_cols:
            raw = _cell(row, col)
            kind = classifier.classify_source_value(raw)
            if kind == "business_rule":
                # "src = expr" / "src -> expr": the left side names the column
                left = re.split(r"=|->", raw, maxsplit=1)[0]
                source, logic = resolve_column(left), raw
            else:
                source, logic = resolve_column(raw), ""
            if not source or is_placeholder(source, placeholders):
                continue
            collector.add(ColumnMapping(
                source_column=source,
                target_column=target,
                source_table=col,
                target_table=MULTI_SOURCE_TARGET_TABLE,
                transformation_type=kind,
                transformation_logic=logic or None,
            ))

    return collector.result(MULTI_SOURCE_FORMAT, rows, columns, MULTI_SOURCE_CONFIDENCE)


# ---------------------------------------------------------------------------
# Strategy 3: transformation rule catalog
# ---------------------------------------------------------------------------

def parse_rule_catalog(rows: list[SheetRow], columns: list[str], placeholders: set[str]) -> ParsedMappingSheet | None:
    desc_col = find_header(columns, RULE_DESCRIPTION_KEYWORDS)
    if desc_col is None:
        return None
    others = [c for c in columns if c != desc_col]
    rule_col = find_header(others, RULE_ID_KEYWORDS)
    syntax_col = find_header([c for c in others if c != rule_col], RULE_SYNTAX_KEYWORDS)
    if rule_col is None and syntax_col is None:
        return None

    collector = _Collector()
    for row in rows:
        desc = _cell(row, desc_col)
        if not desc:
            continue
        rule = _cell(row, rule_col)
        syntax = _cell(row, syntax_col)
        text = f"{rule}: {desc}" if rule else desc
        if syntax:
            text = f"{text} - {syntax}"
        collector.rules.append(text)

    return collector.result(RULE_CATALOG_FORMAT, rows, columns, RULE_CATALOG_CONFIDENCE)


# ---------------------------------------------------------------------------
# Strategy 4: vertical
# ---------------------------------------------------------------------------

def parse_vertical(rows: list[SheetRow], columns: list[str], placeholders: set[str]) -> ParsedMappingSheet | None:
    marked = [c for c in columns if any(m in c.lower() for m in VERTICAL_MARKERS)]
    if len(marked) < 2:
        return None
    return parse_standard(rows, columns, placeholders)


# ---------------------------------------------------------------------------
# Strategy 5: generic fallback
# ---------------------------------------------------------------------------

def _generic(rows: list[SheetRow], columns: list[str]) -> ParsedMappingSheet:
    return ParsedMappingSheet(
        detected_format=GENERIC_FORMAT,
        total_rows=len(rows),
        detected_columns=list(columns),
        format_confidence=GENERIC_CONFIDENCE,
    )


def parse_generic(rows: list[SheetRow], columns: list[str], placeholders: set[str]) -> ParsedMappingSheet:
    return _generic(rows, columns)


STRATEGIES: tuple[Callable[[list[SheetRow], list[str], set[str]], ParsedMappingSheet | None], ...] = (
    parse_standard,
    parse_multi_source,
    parse_rule_catalog,
    parse_vertical,
    parse_generic,
)
