import json
from pathlib import Path

import pytest

from listing_indexer.cli import main
from listing_indexer.search.collection import MODE_CREATE_OR_APPEND, open_collection


@pytest.mark.integration
def test_error_budget_aborts_and_keeps_only_committed_rows(tmp_path: Path):
    csv_path = tmp_path / "listings.csv"
    csv_path.write_text(
        "id,name,host_id,host_name\n"
        "1,First,10,Ana\n"
        "2,Second,20,Bo\n"
        "3,Third,30,Cy\n"
        ",Blank one,40,Di\n"
        ",Blank two,50,Ed\n"
        ",Blank three,60,Flo\n",
        encoding="utf-8",
    )
    index_root = tmp_path / "idx"
    log_file = tmp_path / "run.log"

    exit_code = main(
        [
            "--input",
            str(csv_path),
            "--index-root",
            str(index_root),
            "--commit-window",
            "2",
            "--max-errors",
            "2",
            "--log-file",
            str(log_file),
        ]
    )

    assert exit_code == 6
    with open_collection(index_root / "index_properties", MODE_CREATE_OR_APPEND) as properties:
        assert properties.count() == 2
        assert properties.get(3) is None
    with open_collection(index_root / "index_hosts", MODE_CREATE_OR_APPEND) as hosts:
        assert hosts.count() == 2

    events = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert any(event["event"] == "ERROR_BUDGET_EXCEEDED" for event in events)
    summary = next(event for event in events if event["event"] == "RUN_SUMMARY")
    assert summary["status"] == "aborted"
    assert summary["rows_in"] == 6
