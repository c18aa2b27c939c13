"""Delimited row tokenisation and header-resolved cell access."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeVar

from listing_indexer.common.errors import InputError
from listing_indexer.ingest.normalize import ParsedDate, parse_date, parse_float

QUOTE = '"'
T = TypeVar("T")


def tokenize(row_text: str, delimiter: str = ",") -> list[str]:
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(row_text)
    while i < length:
        char = row_text[i]
        if char == QUOTE:
            if in_quotes and i + 1 < length and row_text[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            cells.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    cells.append("".join(current))
    return cells


@dataclass(frozen=True)
class HeaderIndex:
    """Column name to cell position, resolved once from the header row."""

    positions: dict[str, int]

    @classmethod
    def from_cells(cls, cells: list[str]) -> "HeaderIndex":
        positions: dict[str, int] = {}
        for idx, name in enumerate(cells):
            key = name.strip().lstrip("\ufeff")
            if not key:
                continue
            # First occurrence wins so keys stay unique.
            positions.setdefault(key, idx)
        if not positions:
            raise InputError("header row has no column names")
        return cls(positions=positions)

    def __contains__(self, column: str) -> bool:
        return column in self.positions

    def missing(self, columns: list[str]) -> list[str]:
        return [column for column in columns if column not in self.positions]


@dataclass(frozen=True)
class RawRow:
    cells: list[str]
    header: HeaderIndex
    row_number: int = 0

    def get_string(self, column: str) -> str | None:
        """Return the raw cell for ``column``, or ``None`` when absent or empty."""
        idx = self.header.positions.get(column)
        if idx is None or idx >= len(self.cells):
            return None
        value = self.cells[idx]
        return value if value else None

    def get_value(self, column: str, coerce: Callable[[str | None], T | None]) -> T | None:
        return coerce(self.get_string(column))

    def get_numeric(self, column: str) -> float | None:
        return parse_float(self.get_string(column))

    def get_date(self, column: str) -> ParsedDate | None:
        return parse_date(self.get_string(column))
