"""Query clauses evaluated against a collection's SQLite tables.

Each clause returns the set of matching document keys and, for scored
clauses, a relevance score per key. ``Collection.search`` AND-s clauses
together and sums scores.
"""

from __future__ import annotations

import math
import re
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from pyproj import Geod

_GEOD = Geod(ellps="WGS84")
_METERS_PER_DEGREE_LAT = 111_320.0
# Widens the prefilter box so ellipsoid error never drops a point inside the radius.
_BOX_MARGIN = 1.02
_TERM_RE = re.compile(r"\w+", re.UNICODE)

ClauseResult = tuple[set[str], dict[str, float]]


def fts_expression(text: str) -> str | None:
    """Build an FTS5 MATCH expression that OR-s the quoted terms of ``text``."""
    terms = _TERM_RE.findall(text)
    if not terms:
        return None
    return " OR ".join(f'"{term}"' for term in terms)


def geodesic_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    _az12, _az21, distance = _GEOD.inv(lon1, lat1, lon2, lat2)
    return float(distance)


@dataclass(frozen=True)
class TextQuery:
    text: str
    fields: tuple[str, ...] = ()

    def evaluate(self, conn: sqlite3.Connection) -> ClauseResult:
        expression = fts_expression(self.text)
        if expression is None:
            return set(), {}
        sql = (
            "SELECT e.key, m.score FROM "
            "(SELECT rowid, bm25(text_index) AS score FROM text_index WHERE text_index MATCH ?) AS m "
            "JOIN text_entries AS e ON e.id = m.rowid"
        )
        params: list[Any] = [expression]
        if self.fields:
            sql += f" WHERE e.field IN ({', '.join('?' for _ in self.fields)})"
            params.extend(self.fields)

        scores: dict[str, float] = {}
        for key, score in conn.execute(sql, params):
            # bm25() is lower-is-better; flip so larger means more relevant.
            scores[key] = scores.get(key, 0.0) - float(score)
        return set(scores), scores


@dataclass(frozen=True)
class KeywordQuery:
    field: str
    value: str

    def evaluate(self, conn: sqlite3.Connection) -> ClauseResult:
        rows = conn.execute(
            "SELECT DISTINCT key FROM keywords WHERE field = ? AND value = ? COLLATE NOCASE",
            (self.field, self.value.strip()),
        )
        return {key for (key,) in rows}, {}


@dataclass(frozen=True)
class RangeQuery:
    field: str
    low: float | None = None
    high: float | None = None

    def evaluate(self, conn: sqlite3.Connection) -> ClauseResult:
        sql = "SELECT DISTINCT key FROM numerics WHERE field = ?"
        params: list[Any] = [self.field]
        if self.low is not None:
            sql += " AND value >= ?"
            params.append(self.low)
        if self.high is not None:
            sql += " AND value <= ?"
            params.append(self.high)
        return {key for (key,) in conn.execute(sql, params)}, {}


@dataclass(frozen=True)
class GeoBoxQuery:
    field: str
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def points(self, conn: sqlite3.Connection):
        sql = "SELECT key, lat, lon FROM points WHERE field = ? AND lat BETWEEN ? AND ?"
        params: list[Any] = [self.field, self.min_lat, self.max_lat]
        if self.min_lon <= self.max_lon:
            sql += " AND lon BETWEEN ? AND ?"
        else:
            # Box crosses the antimeridian.
            sql += " AND (lon >= ? OR lon <= ?)"
        params.extend([self.min_lon, self.max_lon])
        return conn.execute(sql, params)

    def evaluate(self, conn: sqlite3.Connection) -> ClauseResult:
        return {key for key, _lat, _lon in self.points(conn)}, {}


@dataclass(frozen=True)
class GeoRadiusQuery:
    field: str
    lat: float
    lon: float
    radius_m: float

    def _prefilter_box(self) -> GeoBoxQuery:
        delta_lat = self.radius_m * _BOX_MARGIN / _METERS_PER_DEGREE_LAT
        min_lat = max(-90.0, self.lat - delta_lat)
        max_lat = min(90.0, self.lat + delta_lat)
        cos_lat = math.cos(math.radians(self.lat))
        if min_lat <= -90.0 or max_lat >= 90.0 or cos_lat < 1e-6:
            return GeoBoxQuery(self.field, min_lat, max_lat, -180.0, 180.0)
        delta_lon = self.radius_m * _BOX_MARGIN / (_METERS_PER_DEGREE_LAT * cos_lat)
        if delta_lon >= 180.0:
            return GeoBoxQuery(self.field, min_lat, max_lat, -180.0, 180.0)
        min_lon = self.lon - delta_lon
        max_lon = self.lon + delta_lon
        if min_lon < -180.0:
            min_lon += 360.0
        if max_lon > 180.0:
            max_lon -= 360.0
        return GeoBoxQuery(self.field, min_lat, max_lat, min_lon, max_lon)

    def evaluate(self, conn: sqlite3.Connection) -> ClauseResult:
        matched: set[str] = set()
        for key, lat, lon in self._prefilter_box().points(conn):
            if geodesic_distance_m(self.lat, self.lon, lat, lon) <= self.radius_m:
                matched.add(key)
        return matched, {}


@dataclass(frozen=True)
class SearchHit:
    key: str
    score: float
    document: dict[str, Any]


@dataclass(frozen=True)
class SearchResult:
    total_hits: int
    hits: list[SearchHit] = field(default_factory=list)
