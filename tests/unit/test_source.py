import gzip
from pathlib import Path

import pytest

from listing_indexer.common.errors import InputError
from listing_indexer.common.http import HttpClient, RetryConfig
from listing_indexer.ingest.source import is_remote, open_input


class FakeResponse:
    def __init__(self, body: bytes):
        self.status_code = 200
        self._body = body

    def iter_content(self, chunk_size: int = 1):
        yield self._body

    def close(self):
        pass


def test_open_input_reads_plain_and_gzip_files(tmp_path: Path):
    plain = tmp_path / "listings.csv"
    plain.write_text("id,name\n1,Café\n", encoding="utf-8")
    packed = tmp_path / "listings.csv.gz"
    with gzip.open(packed, "wt", encoding="utf-8") as f:
        f.write("id,name\n1,Café\n")

    for path in (plain, packed):
        with open_input(str(path), "utf-8") as stream:
            assert stream.read() == "id,name\n1,Café\n"


def test_open_input_missing_or_directory_raises(tmp_path: Path):
    with pytest.raises(InputError):
        with open_input(str(tmp_path / "absent.csv"), "utf-8"):
            pass
    with pytest.raises(InputError):
        with open_input(str(tmp_path), "utf-8"):
            pass


def test_open_input_downloads_remote_files(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    requested = []

    def fake_request(**kwargs):
        requested.append(kwargs["url"])
        return FakeResponse(gzip.compress("id,name\n7,Remote\n".encode("utf-8")))

    monkeypatch.setattr(client.session, "request", fake_request)

    url = "https://data.example.com/la/listings.csv.gz"
    with open_input(url, "utf-8", http_client=client) as stream:
        assert stream.read() == "id,name\n7,Remote\n"
    assert requested == [url]


def test_is_remote():
    assert is_remote("https://example.com/listings.csv")
    assert is_remote("http://example.com/listings.csv")
    assert not is_remote("data/listings.csv")
    assert not is_remote("C:/data/listings.csv")
