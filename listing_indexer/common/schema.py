"""Minimal strict schema for the YAML settings file."""

from __future__ import annotations

import codecs

from listing_indexer.common.constants import MODES
from listing_indexer.common.errors import ConfigError

SETTINGS_KEYS = {
    "input",
    "index_root",
    "mode",
    "delimiter",
    "encoding",
    "id_field",
    "host_id_field",
    "threads",
    "max_errors",
    "commit_window",
    "log_file",
    "log_level",
    "dry_run",
    "force",
    "http",
}
HTTP_KEYS = {"max_attempts", "connect_timeout", "read_timeout"}
LOG_LEVELS = {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}
DELIMITER_ALIASES = {"\\t": "\t", "tab": "\t"}


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str) -> None:
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_int_at_least(obj: dict, key: str, minimum: int) -> None:
    value = obj.get(key)
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")


def normalise_delimiter(value: str) -> str:
    delimiter = DELIMITER_ALIASES.get(value, value)
    if len(delimiter) != 1:
        raise ConfigError(f"delimiter must be a single character, got {value!r}")
    if delimiter in {'"', "\n", "\r"}:
        raise ConfigError(f"delimiter cannot be {value!r}")
    return delimiter


def validate_settings_file(cfg) -> dict:
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ConfigError("settings file must contain a mapping")
    _assert_no_unknown_keys(cfg, SETTINGS_KEYS, "settings file")
    http = cfg.get("http")
    if http is not None:
        if not isinstance(http, dict):
            raise ConfigError("http must be a mapping")
        _assert_no_unknown_keys(http, HTTP_KEYS, "http")
    return cfg


def validate_settings(values: dict) -> dict:
    """Check the merged settings mapping and return it with normalised values."""
    if values.get("mode") not in MODES:
        raise ConfigError(f"mode must be one of {', '.join(MODES)}, got {values.get('mode')!r}")

    if not values.get("input"):
        raise ConfigError("input is required")
    if not values.get("index_root") and not values.get("dry_run"):
        raise ConfigError("index_root is required")

    values["delimiter"] = normalise_delimiter(str(values.get("delimiter", "")))

    try:
        codecs.lookup(values["encoding"])
    except (LookupError, TypeError) as exc:
        raise ConfigError(f"unknown encoding: {values.get('encoding')!r}") from exc

    for key in ("id_field", "host_id_field"):
        if not isinstance(values.get(key), str) or not values[key].strip():
            raise ConfigError(f"{key} must be a non-empty column name")

    _assert_int_at_least(values, "max_errors", 0)
    _assert_int_at_least(values, "commit_window", 1)
    _assert_int_at_least(values, "threads", 1)

    if str(values.get("log_level", "")).upper() not in LOG_LEVELS:
        raise ConfigError(f"unknown log level: {values.get('log_level')!r}")

    http = values.get("http") or {}
    _assert_int_at_least(http, "max_attempts", 1)
    return values
