import pytest

from listing_indexer.common.errors import ConfigError
from listing_indexer.common.schema import normalise_delimiter, validate_settings, validate_settings_file


BASE_SETTINGS = {
    "input": "listings.csv",
    "index_root": "index",
    "mode": "build",
    "delimiter": ",",
    "encoding": "utf-8",
    "id_field": "id",
    "host_id_field": "host_id",
    "threads": 2,
    "max_errors": 100,
    "commit_window": 5000,
    "log_level": "info",
    "dry_run": False,
    "http": {},
}


def test_validate_settings_accepts_valid_shape():
    validated = validate_settings(dict(BASE_SETTINGS))
    assert validated["delimiter"] == ","


def test_validate_settings_file_rejects_unknown_key():
    with pytest.raises(ConfigError):
        validate_settings_file({"mode": "build", "unexpected": True})


def test_validate_settings_file_rejects_unknown_http_key():
    with pytest.raises(ConfigError):
        validate_settings_file({"http": {"proxy": "x"}})


def test_validate_settings_file_requires_mapping():
    assert validate_settings_file(None) == {}
    with pytest.raises(ConfigError):
        validate_settings_file(["mode", "build"])


@pytest.mark.parametrize(
    "key,value",
    [
        ("mode", "append"),
        ("input", ""),
        ("index_root", None),
        ("encoding", "no-such-codec"),
        ("id_field", "  "),
        ("max_errors", -1),
        ("commit_window", 0),
        ("threads", 0),
        ("threads", True),
        ("log_level", "chatty"),
    ],
)
def test_validate_settings_rejects_bad_values(key, value):
    bad = dict(BASE_SETTINGS)
    bad[key] = value
    with pytest.raises(ConfigError):
        validate_settings(bad)


def test_index_root_is_optional_for_dry_runs():
    okay = dict(BASE_SETTINGS, index_root=None, dry_run=True)
    validate_settings(okay)


def test_max_errors_zero_is_allowed():
    validate_settings(dict(BASE_SETTINGS, max_errors=0))


def test_normalise_delimiter_aliases_and_rejections():
    assert normalise_delimiter("\\t") == "\t"
    assert normalise_delimiter("tab") == "\t"
    assert normalise_delimiter(";") == ";"
    for bad in ("", ";;", '"', "\n"):
        with pytest.raises(ConfigError):
            normalise_delimiter(bad)
