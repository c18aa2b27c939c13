"""CLI entrypoint for indexing a short-term-rental listings CSV into property and host collections."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from listing_indexer.common.config_loader import load_settings
from listing_indexer.common.constants import (
    DEFAULT_CONFIG_PATH,
    EXIT_ERROR_BUDGET,
    EXIT_IO_ERROR,
    EXIT_PARAMETER_ERROR,
    EXIT_SUCCESS,
    EXIT_UNEXPECTED,
    MODES,
)
from listing_indexer.common.errors import (
    CollectionError,
    ConfigError,
    ErrorBudgetExceeded,
    InputError,
    PipelineError,
)
from listing_indexer.common.http import HttpClient
from listing_indexer.common.ids import generate_run_id
from listing_indexer.common.logging import build_logger, close_logger, log_event
from listing_indexer.ingest.orchestrator import IngestionOrchestrator


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise ConfigError(message)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = _ArgumentParser(description=__doc__)
    parser.add_argument("--input", default=None, help="CSV path, .gz path, or http(s) URL")
    parser.add_argument("--index-root", default=None)
    parser.add_argument("--mode", default=None, choices=MODES)
    parser.add_argument("--delimiter", default=None)
    parser.add_argument("--encoding", default=None)
    parser.add_argument("--id-field", default=None)
    parser.add_argument("--host-id-field", default=None)
    parser.add_argument("--threads", type=int, default=None)
    parser.add_argument("--max-errors", type=int, default=None)
    parser.add_argument("--commit-window", type=int, default=None)
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--config", default=None, help=f"YAML settings file (default: {DEFAULT_CONFIG_PATH} if present)")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--dry-run", action="store_true", default=None)
    parser.add_argument("--force", action="store_true", default=None)
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "input": args.input,
        "index_root": args.index_root,
        "mode": args.mode,
        "delimiter": args.delimiter,
        "encoding": args.encoding,
        "id_field": args.id_field,
        "host_id_field": args.host_id_field,
        "threads": args.threads,
        "max_errors": args.max_errors,
        "commit_window": args.commit_window,
        "log_file": args.log_file,
        "log_level": args.log_level,
        "dry_run": args.dry_run,
        "force": args.force,
    }


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, ConfigError):
        return EXIT_PARAMETER_ERROR
    if isinstance(exc, (InputError, CollectionError)):
        return EXIT_IO_ERROR
    if isinstance(exc, ErrorBudgetExceeded):
        return EXIT_ERROR_BUDGET
    return EXIT_UNEXPECTED


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_path = Path(args.config) if args.config else Path(DEFAULT_CONFIG_PATH)
    if args.config and not config_path.exists():
        raise ConfigError(f"Settings file not found: {config_path}")
    settings = load_settings(config_path, _overrides(args))

    logger = build_logger(run_id, log_file=settings.log_file, level=settings.log_level)
    try:
        with HttpClient(timeout=settings.http_timeout, retry=settings.http_retry) as http_client:
            orchestrator = IngestionOrchestrator(settings, logger, run_id, http_client=http_client)
            try:
                orchestrator.run()
            except PipelineError as exc:
                log_event(logger, f"run failed: {exc}", level="error", run_id=run_id, event="RUN_END", status="error", error_code=exc.error_code)
                return exit_code_for(exc)
            except Exception as exc:
                log_event(logger, f"unexpected failure: {exc}", level="error", run_id=run_id, event="RUN_END", status="error", error_code="UNEXPECTED_ERROR")
                return EXIT_UNEXPECTED
        log_event(logger, "run complete", run_id=run_id, event="RUN_END", status="ok")
        return EXIT_SUCCESS
    finally:
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(sys.argv[1:] if argv is None else argv)
        return run_command(args)
    except ConfigError as exc:
        print(f"Parameter error: {exc}", file=sys.stderr)
        return EXIT_PARAMETER_ERROR
    except PipelineError as exc:
        print(f"{exc.error_code}: {exc}", file=sys.stderr)
        return exit_code_for(exc)
    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    raise SystemExit(main())
