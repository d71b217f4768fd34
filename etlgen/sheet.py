"""Sheet cells: the typed boundary between raw spreadsheet rows and the parser.

Rows arrive as mappings from arbitrary header strings to arbitrary scalar
values. They are converted exactly once, here, into SheetRow objects whose
cells are a small tagged union (text / number / boolean / blank). Nothing past
this module touches a raw value.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from etlgen.rules import AUTO_HEADER_PATTERN

TEXT = "text"
NUMBER = "number"
BOOLEAN = "boolean"
BLANK = "blank"


@dataclass(frozen=True)
class Cell:
    kind: str
    value: str | float | bool | None = None

    @classmethod
    def from_value(cls, raw: Any) -> Cell:
        if raw is None:
            return BLANK_CELL
        if isinstance(raw, bool):
            return cls(BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            if isinstance(raw, float) and math.isnan(raw):
                return BLANK_CELL
            try:
                return cls(NUMBER, float(raw))
            except OverflowError:
                return cls(TEXT, str(raw))
        text = str(raw)
        if not text.strip():
            return BLANK_CELL
        return cls(TEXT, text)

    @property
    def is_blank(self) -> bool:
        return self.kind == BLANK

    @property
    def text(self) -> str:
        """The cell rendered as trimmed text; blank cells render as ''."""
        if self.kind == BLANK:
            return ""
        if self.kind == BOOLEAN:
            return "true" if self.value else "false"
        if self.kind == NUMBER:
            number = float(self.value)  # type: ignore[arg-type]
            return str(int(number)) if number.is_integer() else str(number)
        return str(self.value).strip()


BLANK_CELL = Cell(BLANK)


def is_unknown_header(name: str) -> bool:
    """True for blank or reader-generated header names like ``column_3``."""
    stripped = name.strip()
    return not stripped or bool(AUTO_HEADER_PATTERN.match(stripped))


@dataclass(frozen=True)
class SheetRow:
    """One sheet row as ordered (header, cell) pairs."""
    cells: tuple[tuple[str, Cell], ...] = ()

    @classmethod
    def from_raw(cls, raw: Any) -> SheetRow:
        if not isinstance(raw, Mapping):
            return cls()
        return cls(tuple((str(k), Cell.from_value(v)) for k, v in raw.items()))

    @property
    def headers(self) -> list[str]:
        return [h for h, _ in self.cells]

    def get(self, header: str | None) -> Cell:
        if header is None:
            return BLANK_CELL
        for h, cell in self.cells:
            if h == header:
                return cell
        return BLANK_CELL

    def text(self, header: str | None) -> str:
        return self.get(header).text

    def at(self, position: int) -> Cell:
        if 0 <= position < len(self.cells):
            return self.cells[position][1]
        return BLANK_CELL

    def values(self) -> list[Cell]:
        return [c for _, c in self.cells]

    def relabel(self, labels: Mapping[str, str]) -> SheetRow:
        """Rename headers; headers missing from ``labels`` keep their name."""
        return SheetRow(tuple((labels.get(h, h), c) for h, c in self.cells))


def normalize_rows(rows: Iterable[Any] | None) -> list[SheetRow]:
    """Convert raw rows into SheetRows. Non-mapping rows become empty rows."""
    if not rows:
        return []
    return [SheetRow.from_raw(r) for r in rows]


def labels_from_row(row: SheetRow) -> dict[str, str]:
    """Header renames that promote a label row's values to header names."""
    labels: dict[str, str] = {}
    used: set[str] = set()
    for header, cell in row.cells:
        if cell.is_blank:
            continue
        label = cell.text
        if label.lower() in used:
            label = f"{label}_{len(used) + 1}"
        used.add(label.lower())
        labels[header] = label
    return labels
