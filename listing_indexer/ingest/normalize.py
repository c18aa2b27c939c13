"""Total coercion functions from raw cell text to typed values.

Every function here returns ``None`` for blank or unparseable input instead of
raising, so one dirty optional cell never invalidates a row.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from listing_indexer.common.time_utils import iso_date_to_epoch_millis

TRUTHY = frozenset({"t", "true", "yes", "1"})
HTML_FRAGMENTS = ("<br />", "<br>", "&nbsp;")
_INTEGER_KEY_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class ParsedDate:
    raw: str
    epoch_millis: int | None

    @property
    def is_structured(self) -> bool:
        return self.epoch_millis is not None


def clean_string(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_float(value: str | None) -> float | None:
    text = clean_string(value)
    if text is None:
        return None
    # float() accepts "1_000"; digit separators are rejected.
    if "_" in text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def parse_int(value: str | None) -> int | None:
    """Parse an integer, truncating decimal input (``"2.7"`` -> ``2``)."""
    parsed = parse_float(value)
    if parsed is None:
        return None
    return int(parsed)


def parse_key_int(value: str | None) -> int | None:
    """Parse an identifier exactly. Decimal or out-of-pattern text is not a key."""
    text = clean_string(value)
    if text is None or not _INTEGER_KEY_RE.fullmatch(text):
        return None
    return int(text)


def parse_currency(value: str | None) -> float | None:
    if value is None:
        return None
    return parse_float(value.replace("$", "").replace(",", ""))


def parse_date(value: str | None) -> ParsedDate | None:
    text = clean_string(value)
    if text is None:
        return None
    try:
        return ParsedDate(raw=text, epoch_millis=iso_date_to_epoch_millis(text))
    except ValueError:
        return ParsedDate(raw=text, epoch_millis=None)


def parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in TRUTHY


def bool_to_int(value: str | None) -> int:
    return 1 if parse_bool(value) else 0


def clean_html(value: str | None) -> str | None:
    if value is None:
        return None
    for fragment in HTML_FRAGMENTS:
        value = value.replace(fragment, " ")
    return clean_string(value)


def normalize_category(value: str | None) -> str | None:
    text = clean_string(value)
    return text.lower() if text is not None else None


def _finish_token(raw: str) -> str:
    token = raw.strip()
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        token = token[1:-1]
    return token.replace('\\"', '"').strip()


def parse_amenities(value: str | None) -> list[str]:
    """Split a bracketed, quoted list such as ``["Wifi", "Pool"]``.

    Duplicates and order are preserved; empty tokens are dropped. Both ``""``
    and ``\\"`` are accepted as escaped quotes inside an entry.
    """
    text = clean_string(value)
    if text is None:
        return []
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]

    tokens: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char == "\\" and i + 1 < length and text[i + 1] == '"':
            current.append('\\"')
            i += 1
        elif char == '"':
            if in_quotes and i + 1 < length and text[i + 1] == '"':
                current.append('\\"')
                i += 1
            else:
                current.append(char)
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            tokens.append(_finish_token("".join(current)))
            current = []
        else:
            current.append(char)
        i += 1
    tokens.append(_finish_token("".join(current)))
    return [token for token in tokens if token]
