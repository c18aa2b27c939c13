"""Declarative column tables for property and host records.

Each ``FieldRule`` maps one CSV column to a record attribute, the attribute
kind used by the collection, and the coercion applied to the raw cell.
Categorical rules also name a ``display`` attribute that keeps the trimmed
original casing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from listing_indexer.ingest.normalize import (
    bool_to_int,
    clean_html,
    clean_string,
    normalize_category,
    parse_amenities,
    parse_currency,
    parse_date,
    parse_float,
    parse_int,
)
from listing_indexer.search.collection import KEYWORD, MULTI_TEXT, NUMERIC, TEXT

# Pseudo-kinds resolved by the assembler into concrete collection attributes.
CATEGORY = "category"
DATE = "date"


@dataclass(frozen=True)
class FieldRule:
    column: str
    attribute: str
    kind: str
    coerce: Callable[[str | None], Any]
    display: str | None = None


def _category(column: str) -> FieldRule:
    return FieldRule(column, column, CATEGORY, normalize_category, display=f"{column}_original")


PROPERTY_FIELDS: tuple[FieldRule, ...] = (
    FieldRule("listing_url", "listing_url", KEYWORD, clean_string),
    FieldRule("name", "name", TEXT, clean_string),
    FieldRule("description", "description", TEXT, clean_html),
    FieldRule("neighborhood_overview", "neighborhood_overview", TEXT, clean_html),
    _category("neighbourhood_cleansed"),
    _category("property_type"),
    _category("room_type"),
    FieldRule("amenities", "amenities", MULTI_TEXT, parse_amenities),
    FieldRule("price", "price", NUMERIC, parse_currency),
    FieldRule("number_of_reviews", "number_of_reviews", NUMERIC, parse_int),
    FieldRule("review_scores_rating", "review_scores_rating", NUMERIC, parse_float),
    FieldRule("bathrooms", "bathrooms", NUMERIC, parse_int),
    FieldRule("bathrooms_text", "bathrooms_text", TEXT, clean_string),
    FieldRule("bedrooms", "bedrooms", NUMERIC, parse_int),
    FieldRule("beds", "beds", NUMERIC, parse_int),
    FieldRule("accommodates", "accommodates", NUMERIC, parse_int),
    FieldRule("availability_30", "availability_30", NUMERIC, parse_int),
    FieldRule("availability_365", "availability_365", NUMERIC, parse_int),
)

HOST_FIELDS: tuple[FieldRule, ...] = (
    FieldRule("host_url", "host_url", KEYWORD, clean_string),
    FieldRule("host_name", "host_name", TEXT, clean_string),
    FieldRule("host_since", "host_since", DATE, parse_date, display="host_since_original"),
    FieldRule("host_location", "host_location", TEXT, clean_string),
    FieldRule("host_neighbourhood", "host_neighbourhood", TEXT, clean_string),
    FieldRule("host_about", "host_about", TEXT, clean_html),
    _category("host_response_time"),
    FieldRule("host_is_superhost", "host_is_superhost", NUMERIC, bool_to_int),
)

LATITUDE_COLUMN = "latitude"
LONGITUDE_COLUMN = "longitude"
LOCATION_ATTRIBUTE = "location"