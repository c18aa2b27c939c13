"""Searchable document collections backed by SQLite FTS5.

A collection is a directory holding one SQLite database. Documents are keyed
by a single identifier field and carry typed attributes:

* ``text`` and ``multi_text`` values go to an FTS5 index (porter stemming)
* ``keyword`` values are matched exactly, case-insensitively
* ``numeric`` values support inclusive range queries
* ``geo_point`` values are ``(lat, lon)`` pairs for box and radius queries
* ``stored`` values are kept for display only

Writes happen inside one open transaction until ``commit()``. Closing without
committing discards everything since the last commit.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, Iterator

from listing_indexer.common.errors import CollectionError
from listing_indexer.common.fs import ensure_dir
from listing_indexer.search.query import SearchHit, SearchResult

TEXT = "text"
KEYWORD = "keyword"
NUMERIC = "numeric"
GEO_POINT = "geo_point"
MULTI_TEXT = "multi_text"
STORED = "stored"
ATTRIBUTE_KINDS = frozenset({TEXT, KEYWORD, NUMERIC, GEO_POINT, MULTI_TEXT, STORED})

MODE_CREATE = "create"
MODE_CREATE_OR_APPEND = "create_or_append"
OPEN_MODES = frozenset({MODE_CREATE, MODE_CREATE_OR_APPEND})

DB_FILENAME = "collection.sqlite3"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (name TEXT PRIMARY KEY, value TEXT NOT NULL);
CREATE TABLE IF NOT EXISTS documents (key TEXT PRIMARY KEY, body TEXT NOT NULL);
CREATE TABLE IF NOT EXISTS text_entries (
    id INTEGER PRIMARY KEY,
    key TEXT NOT NULL,
    field TEXT NOT NULL,
    content TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS text_entries_key ON text_entries(key);
CREATE VIRTUAL TABLE IF NOT EXISTS text_index USING fts5(
    content,
    content='text_entries',
    content_rowid='id',
    tokenize='porter unicode61'
);
CREATE TRIGGER IF NOT EXISTS text_entries_ai AFTER INSERT ON text_entries BEGIN
    INSERT INTO text_index(rowid, content) VALUES (new.id, new.content);
END;
CREATE TRIGGER IF NOT EXISTS text_entries_ad AFTER DELETE ON text_entries BEGIN
    INSERT INTO text_index(text_index, rowid, content) VALUES ('delete', old.id, old.content);
END;
CREATE TABLE IF NOT EXISTS keywords (key TEXT NOT NULL, field TEXT NOT NULL, value TEXT NOT NULL);
CREATE INDEX IF NOT EXISTS keywords_lookup ON keywords(field, value COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS keywords_key ON keywords(key);
CREATE TABLE IF NOT EXISTS numerics (key TEXT NOT NULL, field TEXT NOT NULL, value REAL NOT NULL);
CREATE INDEX IF NOT EXISTS numerics_lookup ON numerics(field, value);
CREATE INDEX IF NOT EXISTS numerics_key ON numerics(key);
CREATE TABLE IF NOT EXISTS points (key TEXT NOT NULL, field TEXT NOT NULL, lat REAL NOT NULL, lon REAL NOT NULL);
CREATE INDEX IF NOT EXISTS points_lookup ON points(field, lat, lon);
CREATE INDEX IF NOT EXISTS points_key ON points(key);
"""

_DROP = """
DROP TABLE IF EXISTS text_index;
DROP TABLE IF EXISTS text_entries;
DROP TABLE IF EXISTS keywords;
DROP TABLE IF EXISTS numerics;
DROP TABLE IF EXISTS points;
DROP TABLE IF EXISTS documents;
DROP TABLE IF EXISTS meta;
"""

_KEYED_TABLES = ("documents", "text_entries", "keywords", "numerics", "points")


@dataclass(frozen=True)
class Attribute:
    kind: str
    value: Any

    def __post_init__(self) -> None:
        if self.kind not in ATTRIBUTE_KINDS:
            raise ValueError(f"Unknown attribute kind: {self.kind}")


@contextmanager
def _guard(action: str, path: Path) -> Iterator[None]:
    try:
        yield
    except (sqlite3.Error, OSError) as exc:
        raise CollectionError(f"{action} failed for collection {path}: {exc}") from exc


class Collection:
    def __init__(self, path: Path, conn: sqlite3.Connection, key_field: str | None) -> None:
        self.path = path
        self._conn = conn
        self.key_field = key_field
        self.closed = False

    def __enter__(self) -> "Collection":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.closed:
            self.close()

    def _bind_key_field(self, key_field: str) -> None:
        if self.key_field is None:
            self._conn.execute("INSERT INTO meta(name, value) VALUES ('key_field', ?)", (key_field,))
            self.key_field = key_field
        elif self.key_field != key_field:
            raise CollectionError(
                f"Collection {self.path} is keyed by {self.key_field!r}, not {key_field!r}"
            )

    def upsert(self, key_field: str, key_value: Any, attributes: dict[str, Attribute]) -> None:
        """Insert or replace the document identified by ``key_value``."""
        key = str(key_value)
        body: dict[str, Any] = {key_field: key_value}
        text_rows: list[tuple[str, str, str]] = []
        keyword_rows: list[tuple[str, str, str]] = []
        numeric_rows: list[tuple[str, str, float]] = []
        point_rows: list[tuple[str, str, float, float]] = []

        for name, attribute in attributes.items():
            value = attribute.value
            if value is None:
                continue
            if attribute.kind == TEXT:
                text_rows.append((key, name, str(value)))
            elif attribute.kind == MULTI_TEXT:
                values = [str(item) for item in value]
                text_rows.extend((key, name, item) for item in values)
                value = values
            elif attribute.kind == KEYWORD:
                keyword_rows.append((key, name, str(value)))
            elif attribute.kind == NUMERIC:
                numeric_rows.append((key, name, float(value)))
            elif attribute.kind == GEO_POINT:
                lat, lon = value
                point_rows.append((key, name, float(lat), float(lon)))
                value = {"lat": float(lat), "lon": float(lon)}
            body[name] = value

        with _guard("upsert", self.path):
            self._bind_key_field(key_field)
            for table in _KEYED_TABLES:
                self._conn.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
            self._conn.execute(
                "INSERT INTO documents(key, body) VALUES (?, ?)",
                (key, json.dumps(body, ensure_ascii=False, sort_keys=True)),
            )
            self._conn.executemany("INSERT INTO text_entries(key, field, content) VALUES (?, ?, ?)", text_rows)
            self._conn.executemany("INSERT INTO keywords(key, field, value) VALUES (?, ?, ?)", keyword_rows)
            self._conn.executemany("INSERT INTO numerics(key, field, value) VALUES (?, ?, ?)", numeric_rows)
            self._conn.executemany("INSERT INTO points(key, field, lat, lon) VALUES (?, ?, ?, ?)", point_rows)

    def commit(self) -> None:
        with _guard("commit", self.path):
            self._conn.commit()

    def rollback(self) -> None:
        with _guard("rollback", self.path):
            self._conn.rollback()

    def close(self) -> None:
        """Close the collection. Uncommitted writes are discarded."""
        with _guard("close", self.path):
            self._conn.close()
        self.closed = True

    def get(self, key_value: Any) -> dict[str, Any] | None:
        with _guard("read", self.path):
            row = self._conn.execute("SELECT body FROM documents WHERE key = ?", (str(key_value),)).fetchone()
        return json.loads(row[0]) if row else None

    def count(self) -> int:
        with _guard("read", self.path):
            (total,) = self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        return int(total)

    def search(self, *clauses, limit: int = 100) -> SearchResult:
        """AND the given clauses and return the top ``limit`` hits by score.

        ``total_hits`` counts every matching document regardless of ``limit``.
        """
        with _guard("search", self.path):
            matched: set[str] | None = None
            scores: dict[str, float] = {}
            for clause in clauses:
                keys, clause_scores = clause.evaluate(self._conn)
                matched = keys if matched is None else matched & keys
                for key, score in clause_scores.items():
                    scores[key] = scores.get(key, 0.0) + score
            if matched is None:
                matched = {key for (key,) in self._conn.execute("SELECT key FROM documents")}

            ranked = sorted(matched, key=lambda key: (-scores.get(key, 0.0), key))[: max(limit, 0)]
            hits = []
            for key in ranked:
                row = self._conn.execute("SELECT body FROM documents WHERE key = ?", (key,)).fetchone()
                if row is not None:
                    hits.append(SearchHit(key=key, score=scores.get(key, 0.0), document=json.loads(row[0])))
        return SearchResult(total_hits=len(matched), hits=hits)


def open_collection(path: Path, mode: str = MODE_CREATE_OR_APPEND) -> Collection:
    """Open or create the collection at ``path``.

    ``create`` drops any documents already stored there; ``create_or_append``
    keeps them so later upserts replace by key.
    """
    if mode not in OPEN_MODES:
        raise CollectionError(f"Unknown open mode: {mode}")

    with _guard("open", path):
        ensure_dir(path)
        conn = sqlite3.connect(str(path / DB_FILENAME))
        try:
            if mode == MODE_CREATE:
                conn.executescript(_DROP)
            conn.executescript(_SCHEMA)
            row = conn.execute("SELECT value FROM meta WHERE name = 'key_field'").fetchone()
        except sqlite3.Error:
            conn.close()
            raise
    return Collection(path, conn, key_field=row[0] if row else None)
