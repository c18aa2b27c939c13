"""Open the ingestion input as a text stream.

Accepts a local path, a gzip-compressed local path (``.gz``), or an
``http(s)://`` URL that is downloaded to a temporary file first.
"""

from __future__ import annotations

import gzip
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO
from urllib.parse import urlparse

from listing_indexer.common.errors import InputError
from listing_indexer.common.http import HttpClient


def is_remote(location: str) -> bool:
    return urlparse(location).scheme in {"http", "https"}


def _remote_suffix(location: str) -> str:
    name = Path(urlparse(location).path).name
    return ".csv.gz" if name.endswith(".gz") else ".csv"


def open_text(path: Path, encoding: str) -> TextIO:
    if not path.exists():
        raise InputError(f"Input does not exist: {path.resolve()}")
    if not path.is_file():
        raise InputError(f"Input is not a file: {path.resolve()}")
    try:
        if path.suffix == ".gz":
            return gzip.open(path, "rt", encoding=encoding)
        return path.open("r", encoding=encoding)
    except OSError as exc:
        raise InputError(f"Unable to open input {path}: {exc}") from exc


@contextmanager
def open_input(location: str, encoding: str, http_client: HttpClient | None = None) -> Iterator[TextIO]:
    if not is_remote(location):
        stream = open_text(Path(location), encoding)
        try:
            yield stream
        finally:
            stream.close()
        return

    with tempfile.TemporaryDirectory(prefix="listing-indexer-") as tmp:
        local_path = Path(tmp) / f"input{_remote_suffix(location)}"
        client = http_client or HttpClient()
        try:
            client.download(location, local_path)
        finally:
            if http_client is None:
                client.close()
        stream = open_text(local_path, encoding)
        try:
            yield stream
        finally:
            stream.close()
