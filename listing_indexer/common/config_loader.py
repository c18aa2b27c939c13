"""Settings loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from listing_indexer.common.constants import (
    COMMIT_WINDOW,
    DEFAULT_DELIMITER,
    DEFAULT_ENCODING,
    DEFAULT_HOST_ID_FIELD,
    DEFAULT_ID_FIELD,
    DEFAULT_MAX_ERRORS,
    DEFAULT_MODE,
    HOSTS_COLLECTION,
    PROPERTIES_COLLECTION,
)
from listing_indexer.common.errors import ConfigError
from listing_indexer.common.fs import read_yaml
from listing_indexer.common.http import RetryConfig, TimeoutConfig
from listing_indexer.common.schema import validate_settings, validate_settings_file


def default_threads() -> int:
    return max(1, (os.cpu_count() or 1) // 2)


@dataclass(frozen=True)
class IndexerSettings:
    input: str
    index_root: Path | None
    mode: str = DEFAULT_MODE
    delimiter: str = DEFAULT_DELIMITER
    encoding: str = DEFAULT_ENCODING
    id_field: str = DEFAULT_ID_FIELD
    host_id_field: str = DEFAULT_HOST_ID_FIELD
    # Accepted and reported; rows are always processed sequentially.
    threads: int = field(default_factory=default_threads)
    max_errors: int = DEFAULT_MAX_ERRORS
    commit_window: int = COMMIT_WINDOW
    log_file: Path | None = None
    log_level: str = "INFO"
    dry_run: bool = False
    force: bool = False
    http_retry: RetryConfig = field(default_factory=RetryConfig)
    http_timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    @property
    def properties_path(self) -> Path:
        return self._require_root() / PROPERTIES_COLLECTION

    @property
    def hosts_path(self) -> Path:
        return self._require_root() / HOSTS_COLLECTION

    def _require_root(self) -> Path:
        if self.index_root is None:
            raise ConfigError("index_root is required")
        return self.index_root


def _defaults() -> dict[str, Any]:
    return {
        "input": None,
        "index_root": None,
        "mode": DEFAULT_MODE,
        "delimiter": DEFAULT_DELIMITER,
        "encoding": DEFAULT_ENCODING,
        "id_field": DEFAULT_ID_FIELD,
        "host_id_field": DEFAULT_HOST_ID_FIELD,
        "threads": default_threads(),
        "max_errors": DEFAULT_MAX_ERRORS,
        "commit_window": COMMIT_WINDOW,
        "log_file": None,
        "log_level": "INFO",
        "dry_run": False,
        "force": False,
        "http": {},
    }


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def load_settings_file(path: Path | None) -> dict:
    if path is None or not path.exists():
        return {}
    try:
        raw = read_yaml(path)
    except Exception as exc:
        raise ConfigError(f"Unable to read settings file {path}: {exc}") from exc
    return validate_settings_file(raw)


def load_settings(config_path: Path | None = None, overrides: dict | None = None) -> IndexerSettings:
    """Merge defaults, the YAML settings file, and CLI overrides into validated settings.

    ``None`` values in ``overrides`` mean "not given" and never replace a lower layer.
    """
    merged = _deep_merge(_defaults(), load_settings_file(config_path))
    explicit = {key: value for key, value in (overrides or {}).items() if value is not None}
    merged = _deep_merge(merged, explicit)
    values = validate_settings(merged)

    http = values.get("http") or {}
    defaults_timeout = TimeoutConfig()
    return IndexerSettings(
        input=str(values["input"]),
        index_root=Path(values["index_root"]) if values.get("index_root") else None,
        mode=values["mode"],
        delimiter=values["delimiter"],
        encoding=values["encoding"],
        id_field=values["id_field"].strip(),
        host_id_field=values["host_id_field"].strip(),
        threads=int(values["threads"]),
        max_errors=int(values["max_errors"]),
        commit_window=int(values["commit_window"]),
        log_file=Path(values["log_file"]) if values.get("log_file") else None,
        log_level=str(values["log_level"]).upper(),
        dry_run=bool(values["dry_run"]),
        force=bool(values["force"]),
        http_retry=RetryConfig(max_attempts=int(http.get("max_attempts", RetryConfig().max_attempts))),
        http_timeout=TimeoutConfig(
            connect=float(http.get("connect_timeout", defaults_timeout.connect)),
            read=float(http.get("read_timeout", defaults_timeout.read)),
        ),
    )
