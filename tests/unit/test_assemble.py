import pytest

from listing_indexer.ingest.assemble import (
    assemble_host,
    assemble_property,
    host_attributes,
    property_attributes,
)
from listing_indexer.ingest.fields import CATEGORY, HOST_FIELDS, PROPERTY_FIELDS
from listing_indexer.ingest.tokenizer import HeaderIndex, RawRow
from listing_indexer.search.collection import GEO_POINT, KEYWORD, MULTI_TEXT, NUMERIC, STORED, TEXT

COLUMNS = [
    "id",
    "name",
    "description",
    "host_id",
    "host_name",
    "host_since",
    "host_about",
    "host_response_time",
    "host_is_superhost",
    "neighbourhood_cleansed",
    "latitude",
    "longitude",
    "property_type",
    "bathrooms",
    "bedrooms",
    "amenities",
    "price",
    "review_scores_rating",
]


def _row(**values: str) -> RawRow:
    header = HeaderIndex.from_cells(COLUMNS)
    return RawRow([values.get(column, "") for column in COLUMNS], header, row_number=1)


def test_assemble_property_populates_typed_fields():
    row = _row(
        id="101",
        name=" Sunny loft ",
        description="Bright<br />airy",
        host_id="42",
        neighbourhood_cleansed=" Venice ",
        latitude="33.99",
        longitude="-118.47",
        property_type="Entire Loft",
        bathrooms="1.5",
        bedrooms="2",
        amenities='["Wifi","Pool","Wifi"]',
        price="$1,234.50",
        review_scores_rating="4.9",
    )
    record = assemble_property(row)

    assert record.id == 101
    assert record.host_id == "42"
    assert record.name == "Sunny loft"
    assert record.description == "Bright airy"
    assert record.neighbourhood_cleansed == "venice"
    assert record.neighbourhood_cleansed_original == "Venice"
    assert record.property_type == "entire loft"
    assert record.property_type_original == "Entire Loft"
    assert (record.latitude, record.longitude) == (33.99, -118.47)
    assert record.bathrooms == 1
    assert record.bedrooms == 2
    assert record.amenities == ("Wifi", "Pool", "Wifi")
    assert record.price == 1234.50
    assert record.review_scores_rating == 4.9


def test_assemble_property_requires_numeric_identifier():
    assert assemble_property(_row(id="")) is None
    assert assemble_property(_row(id="abc")) is None


def test_assemble_property_keeps_large_identifiers_exact():
    first = assemble_property(_row(id="1043652745946853434"))
    second = assemble_property(_row(id="1043652745946853435"))
    assert first.id == 1043652745946853434
    assert second.id == 1043652745946853435
    assert property_attributes(first)["id"].value != property_attributes(second)["id"].value


@pytest.mark.parametrize("raw", ["7.9", "7.0", "1e3", "1_000", "0x1F"])
def test_assemble_property_rejects_non_integral_identifiers(raw):
    assert assemble_property(_row(id=raw)) is None


def test_malformed_optional_fields_are_omitted_not_fatal():
    record = assemble_property(_row(id="5", price="$", bedrooms="two", latitude="34.0", longitude=""))
    assert record is not None
    assert record.price is None
    assert record.bedrooms is None
    assert record.latitude is None and record.longitude is None
    assert not record.has_location


def test_out_of_range_coordinates_are_dropped():
    record = assemble_property(_row(id="5", latitude="95.0", longitude="10.0"))
    assert not record.has_location


def test_property_attributes_skip_absent_values_and_map_kinds():
    record = assemble_property(
        _row(id="7", name="Loft", property_type="Loft", latitude="1.5", longitude="2.5", amenities='["Wifi"]')
    )
    attributes = property_attributes(record)

    assert attributes["id"].kind == NUMERIC and attributes["id"].value == 7
    assert attributes["name"].kind == TEXT
    assert attributes["property_type"].kind == KEYWORD
    assert attributes["property_type"].value == "loft"
    assert attributes["property_type_original"].kind == STORED
    assert attributes["amenities"].kind == MULTI_TEXT
    assert attributes["location"].kind == GEO_POINT
    assert attributes["location"].value == (1.5, 2.5)
    assert "price" not in attributes
    assert "description" not in attributes
    assert "host_id" not in attributes


def test_assemble_host_normalises_values():
    row = _row(
        id="1",
        host_id=" 42 ",
        host_name="Maria",
        host_since="1970-01-02",
        host_about="Hi<br>there",
        host_response_time="Within an Hour",
        host_is_superhost="t",
    )
    host = assemble_host(row)

    assert host.host_id == "42"
    assert host.host_since == 86_400_000
    assert host.host_since_original == "1970-01-02"
    assert host.host_about == "Hi there"
    assert host.host_response_time == "within an hour"
    assert host.host_response_time_original == "Within an Hour"
    assert host.host_is_superhost == 1


def test_assemble_host_keeps_unparseable_since_for_display():
    host = assemble_host(_row(host_id="9", host_since="last spring", host_is_superhost="maybe"))
    attributes = host_attributes(host)

    assert host.host_since is None
    assert attributes["host_since_original"].kind == STORED
    assert attributes["host_since_original"].value == "last spring"
    assert "host_since" not in attributes
    assert attributes["host_is_superhost"].value == 0
    assert attributes["host_id"].kind == KEYWORD


def test_assemble_host_requires_identifier():
    assert assemble_host(_row(host_id="  ")) is None


def test_assemble_honours_custom_identifier_columns():
    header = HeaderIndex.from_cells(["listing", "owner"])
    row = RawRow(["55", "9"], header)
    record = assemble_property(row, id_field="listing", host_id_field="owner")
    assert record.id == 55
    assert record.host_id == "9"
    assert assemble_host(row, host_id_field="owner").host_id == "9"


@pytest.mark.parametrize("rule", PROPERTY_FIELDS + HOST_FIELDS, ids=lambda rule: rule.column)
def test_every_field_rule_is_total_on_blank_and_garbage(rule):
    for raw in (None, "", "   ", "<<garbage>>"):
        rule.coerce(raw)


@pytest.mark.parametrize("rule", [r for r in PROPERTY_FIELDS + HOST_FIELDS if r.kind == CATEGORY], ids=lambda rule: rule.column)
def test_category_rules_declare_display_attribute(rule):
    assert rule.display == f"{rule.column}_original"
