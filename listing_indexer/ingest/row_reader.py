"""Logical CSV row reading with quote-parity line merging.

A physical line whose unescaped double quotes are unbalanced opens a quoted
field that continues on the next line. Lines are joined with ``\\n`` until the
running quote count is even again. A doubled quote (``""``) is an escaped
quote and never changes parity.

If the input ends while a quote is still open, whatever was accumulated is
returned as the final row.
"""

from __future__ import annotations

from typing import Iterable, Iterator

QUOTE = '"'


def count_unescaped_quotes(line: str) -> int:
    count = 0
    i = 0
    length = len(line)
    while i < length:
        if line[i] == QUOTE:
            if i + 1 < length and line[i + 1] == QUOTE:
                i += 1
            else:
                count += 1
        i += 1
    return count


class QuoteBalancedRowReader:
    def __init__(self, lines: Iterable[str]) -> None:
        self._lines = iter(lines)
        self.physical_lines = 0
        self.truncated_at_eof = False

    def _next_physical(self) -> str | None:
        try:
            line = next(self._lines)
        except StopIteration:
            return None
        self.physical_lines += 1
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def next_logical_row(self) -> str | None:
        line = self._next_physical()
        if line is None:
            return None

        quote_count = count_unescaped_quotes(line)
        if quote_count % 2 == 0:
            return line

        parts = [line]
        while quote_count % 2 != 0:
            line = self._next_physical()
            if line is None:
                self.truncated_at_eof = True
                break
            parts.append(line)
            quote_count += count_unescaped_quotes(line)
        return "\n".join(parts)

    def __iter__(self) -> Iterator[str]:
        while True:
            row = self.next_logical_row()
            if row is None:
                return
            yield row
