"""Transformation classifier: what kind of change does a mapping's logic text describe?

All functions are pure and read their patterns from ``etlgen.rules``.
"""

from __future__ import annotations

from etlgen import models
from etlgen.rules import (
    BARE_IDENTIFIER,
    CLASSIFIER_RULES,
    COMPLEXITY_PATTERNS,
    DIRECT_MOVE_PHRASES,
    SOURCE_VALUE_DATE,
    SOURCE_VALUE_RULE,
)


def _normalize(logic: object) -> str:
    if logic is None:
        return ""
    return " ".join(str(logic).split()).upper()


def _matching_rule(upper: str) -> str | None:
    for transformation_type, pattern in CLASSIFIER_RULES:
        if pattern.search(upper):
            return transformation_type
    return None


def is_direct_move(logic: object) -> bool:
    """True when the logic text describes no real transformation.

    Blank text, a known "no change" phrase (whole text, leading word, or
    followed by MOVE/MAPPING), or a bare column reference such as
    ``Customer.Name`` or ``[Cust ID]`` all count as direct moves.
    """
    upper = _normalize(logic)
    if not upper:
        return True

    for phrase in DIRECT_MOVE_PHRASES:
        if (
            upper == phrase
            or upper.startswith(phrase + " ")
            or phrase + " MOVE" in upper
            or phrase + " MAPPING" in upper
        ):
            return True

    return bool(BARE_IDENTIFIER.match(upper)) and _matching_rule(upper) is None


def classify(logic: object) -> str:
    """Map logic text to a transformation type.

    Rules are checked from most to least specific, so ``COALESCE(TRIM(x), '')``
    is a trim rather than null handling. Text that is neither a direct move nor
    matches any rule is ``unknown``.
    """
    if is_direct_move(logic):
        return models.DIRECT_MOVE
    return _matching_rule(_normalize(logic)) or models.UNKNOWN


def assess_complexity(logic: object) -> str:
    """simple (0 indicators), medium (1-2) or complex (3+).

    Indicators are counted per occurrence: CASE...WHEN blocks, JOINs,
    subquery markers and opening parentheses.
    """
    upper = _normalize(logic)
    if not upper:
        return models.SIMPLE
    score = sum(len(pattern.findall(upper)) for pattern in COMPLEXITY_PATTERNS)
    if score == 0:
        return models.SIMPLE
    if score <= 2:
        return models.MEDIUM
    return models.COMPLEX


def classify_source_value(value: str) -> str:
    """Guess the transformation type from a fan-in sheet's source cell."""
    if SOURCE_VALUE_RULE.search(value):
        return models.BUSINESS_RULE
    if SOURCE_VALUE_DATE.search(value):
        return models.DATE_FORMAT
    return models.DIRECT_MOVE
