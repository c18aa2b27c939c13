"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing parameters."""

    error_code = "CONFIG_ERROR"


class InputError(PipelineError):
    """Raised when the input file cannot be opened, fetched, or decoded."""

    error_code = "INPUT_ERROR"


class CollectionError(PipelineError):
    """Raised when a target collection cannot be opened, written, or closed."""

    error_code = "COLLECTION_ERROR"


class RowError(PipelineError):
    """Raised for a structurally unusable row; recovered by the orchestrator."""

    error_code = "ROW_ERROR"


class ErrorBudgetExceeded(PipelineError):
    """Raised when row errors exceed the configured maximum."""

    error_code = "ERROR_BUDGET_EXCEEDED"

    def __init__(self, message: str, summary=None) -> None:
        super().__init__(message)
        self.summary = summary
