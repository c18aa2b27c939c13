"""Application constants."""

USER_AGENT = "listing-indexer/1.0 (listings CSV downloader)"
MODES = ("build", "update", "rebuild")
DEFAULT_MODE = "build"
DEFAULT_DELIMITER = ","
DEFAULT_ENCODING = "utf-8"
DEFAULT_ID_FIELD = "id"
DEFAULT_HOST_ID_FIELD = "host_id"
DEFAULT_MAX_ERRORS = 100
COMMIT_WINDOW = 5000
PROPERTIES_COLLECTION = "index_properties"
HOSTS_COLLECTION = "index_hosts"
DEFAULT_CONFIG_PATH = "./config/indexer.yml"
EXIT_SUCCESS = 0
EXIT_IO_ERROR = 3
EXIT_PARAMETER_ERROR = 4
EXIT_UNEXPECTED = 5
EXIT_ERROR_BUDGET = 6
JSON_LOG_FIELDS = (
    "timestamp",
    "level",
    "run_id",
    "stage",
    "collection",
    "event",
    "status",
    "row_number",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
