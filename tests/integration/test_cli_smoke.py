import gzip
import json
from pathlib import Path

import pytest

from listing_indexer.cli import main, parse_args, run_command
from listing_indexer.search.collection import MODE_CREATE_OR_APPEND, open_collection
from listing_indexer.search.query import GeoRadiusQuery, KeywordQuery, RangeQuery, TextQuery

FIXTURE = Path("tests/fixtures/listings_small.csv")


def _events(log_file: Path) -> list[dict]:
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]


@pytest.mark.integration
def test_cli_indexes_fixture_into_both_collections(tmp_path: Path):
    index_root = tmp_path / "idx"
    log_file = tmp_path / "logs" / "run.log"
    args = parse_args(
        [
            "--input",
            str(FIXTURE),
            "--index-root",
            str(index_root),
            "--log-file",
            str(log_file),
            "--run-id",
            "run-test",
        ]
    )

    exit_code = run_command(args)

    assert exit_code == 0
    with open_collection(index_root / "index_properties", MODE_CREATE_OR_APPEND) as properties:
        assert properties.count() == 4
        loft = properties.get(101)
        assert loft["price"] == 1234.5
        assert loft["amenities"] == ["Wifi", "Pool", "Kitchen"]
        assert loft["property_type"] == "entire loft"
        assert loft["property_type_original"] == "Entire loft"
        assert loft["bathrooms"] == 1
        assert loft["location"] == {"lat": 33.99, "lon": -118.47}
        assert "<br" not in loft["description"]

        assert [hit.key for hit in properties.search(TextQuery("cozy deck")).hits] == ["101"]
        assert properties.search(TextQuery("pool", fields=("amenities",))).total_hits == 1
        assert properties.search(KeywordQuery("host_id", "42")).total_hits == 3
        assert properties.search(RangeQuery("price", high=100)).total_hits == 1
        assert [hit.key for hit in properties.search(GeoRadiusQuery("location", 33.99, -118.47, 2_000)).hits] == ["101"]
        assert "location" not in properties.get(104)

    with open_collection(index_root / "index_hosts", MODE_CREATE_OR_APPEND) as hosts:
        assert hosts.count() == 3
        ana = hosts.get("42")
        assert ana["host_since"] == 1425254400000
        assert ana["host_since_original"] == "2015-03-02"
        assert ana["host_is_superhost"] == 1
        assert ana["host_about"] == "Hi there"
        bo = hosts.get("77")
        assert "host_since" not in bo
        assert bo["host_since_original"] == "not a date"
        assert bo["host_is_superhost"] == 0
        assert hosts.get("99") is None

    events = _events(log_file)
    assert {event["run_id"] for event in events} == {"run-test"}
    summary = next(event for event in events if event["event"] == "RUN_SUMMARY")
    assert summary["status"] == "success"
    assert summary["rows_in"] == 6
    assert summary["rows_out"] == 7
    assert any(event["event"] == "ROW_SKIPPED" and event["row_number"] == 4 for event in events)
    assert any(event["event"] == "ROW_ERROR" and event["row_number"] == 5 for event in events)
    assert events[-1]["event"] == "RUN_END"


@pytest.mark.integration
def test_cli_dry_run_writes_nothing(tmp_path: Path):
    exit_code = main(["--input", str(FIXTURE), "--dry-run", "--log-level", "DEBUG", "--log-file", str(tmp_path / "run.log")])

    assert exit_code == 0
    events = _events(tmp_path / "run.log")
    assert sum(1 for event in events if event["event"] == "DRY_RUN_UPSERT") == 7
    assert not any(event["event"] == "COMMIT" for event in events)


@pytest.mark.integration
def test_cli_reads_gzip_input(tmp_path: Path):
    packed = tmp_path / "listings.csv.gz"
    packed.write_bytes(gzip.compress(FIXTURE.read_bytes()))

    assert main(["--input", str(packed), "--index-root", str(tmp_path / "idx")]) == 0
    with open_collection(tmp_path / "idx" / "index_properties", MODE_CREATE_OR_APPEND) as properties:
        assert properties.count() == 4
