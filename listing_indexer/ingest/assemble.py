"""Build property and host records from tokenised rows, and map them to collection attributes."""

from __future__ import annotations

from typing import Any

from listing_indexer.common.models import HostRecord, PropertyRecord
from listing_indexer.ingest.fields import (
    CATEGORY,
    DATE,
    HOST_FIELDS,
    LATITUDE_COLUMN,
    LOCATION_ATTRIBUTE,
    LONGITUDE_COLUMN,
    PROPERTY_FIELDS,
    FieldRule,
)
from listing_indexer.ingest.normalize import clean_string, parse_float, parse_key_int
from listing_indexer.ingest.tokenizer import RawRow
from listing_indexer.search.collection import GEO_POINT, KEYWORD, MULTI_TEXT, NUMERIC, STORED, Attribute

PROPERTY_KEY_FIELD = "id"
HOST_KEY_FIELD = "host_id"


def _valid_lat_lon(lat: float | None, lon: float | None) -> bool:
    if lat is None or lon is None:
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def apply_rules(row: RawRow, rules: tuple[FieldRule, ...]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for rule in rules:
        raw = row.get_string(rule.column)
        value = rule.coerce(raw)
        if rule.kind == CATEGORY:
            values[rule.attribute] = value
            values[rule.display] = clean_string(raw) if value is not None else None
        elif rule.kind == DATE:
            values[rule.attribute] = value.epoch_millis if value is not None else None
            values[rule.display] = value.raw if value is not None else None
        elif rule.kind == MULTI_TEXT:
            values[rule.attribute] = tuple(value)
        else:
            values[rule.attribute] = value
    return values


def assemble_property(row: RawRow, id_field: str = "id", host_id_field: str = "host_id") -> PropertyRecord | None:
    """Return the property for ``row``, or ``None`` when its identifier is missing or not numeric."""
    key = parse_key_int(row.get_string(id_field))
    if key is None:
        return None

    latitude = parse_float(row.get_string(LATITUDE_COLUMN))
    longitude = parse_float(row.get_string(LONGITUDE_COLUMN))
    if not _valid_lat_lon(latitude, longitude):
        latitude = longitude = None

    return PropertyRecord(
        id=key,
        host_id=clean_string(row.get_string(host_id_field)),
        latitude=latitude,
        longitude=longitude,
        **apply_rules(row, PROPERTY_FIELDS),
    )


def assemble_host(row: RawRow, host_id_field: str = "host_id") -> HostRecord | None:
    host_id = clean_string(row.get_string(host_id_field))
    if host_id is None:
        return None
    return HostRecord(host_id=host_id, **apply_rules(row, HOST_FIELDS))


def _rule_attributes(record, rules: tuple[FieldRule, ...]) -> dict[str, Attribute]:
    attributes: dict[str, Attribute] = {}
    for rule in rules:
        # Display values are kept even when the typed value failed to parse.
        if rule.display is not None and getattr(record, rule.display) is not None:
            attributes[rule.display] = Attribute(STORED, getattr(record, rule.display))

        value = getattr(record, rule.attribute)
        if value is None or value == ():
            continue
        if rule.kind == CATEGORY:
            attributes[rule.attribute] = Attribute(KEYWORD, value)
        elif rule.kind == DATE:
            attributes[rule.attribute] = Attribute(NUMERIC, value)
        else:
            attributes[rule.attribute] = Attribute(rule.kind, value)
    return attributes


def property_attributes(record: PropertyRecord) -> dict[str, Attribute]:
    attributes = {PROPERTY_KEY_FIELD: Attribute(NUMERIC, record.id)}
    if record.host_id is not None:
        attributes[HOST_KEY_FIELD] = Attribute(KEYWORD, record.host_id)
    attributes.update(_rule_attributes(record, PROPERTY_FIELDS))
    if record.has_location:
        attributes[LOCATION_ATTRIBUTE] = Attribute(GEO_POINT, (record.latitude, record.longitude))
        attributes[LATITUDE_COLUMN] = Attribute(NUMERIC, record.latitude)
        attributes[LONGITUDE_COLUMN] = Attribute(NUMERIC, record.longitude)
    return attributes


def host_attributes(record: HostRecord) -> dict[str, Attribute]:
    attributes = {HOST_KEY_FIELD: Attribute(KEYWORD, record.host_id)}
    attributes.update(_rule_attributes(record, HOST_FIELDS))
    return attributes
