"""Drive reader -> tokenizer -> assembler -> collection upserts for one input file.

States: ``init -> configuring_targets -> streaming_rows -> committing -> closed``,
or ``streaming_rows -> aborted -> closed`` when the error budget runs out.
Rows are processed strictly one at a time.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TextIO

from listing_indexer.common.config_loader import IndexerSettings
from listing_indexer.common.errors import CollectionError, ErrorBudgetExceeded, InputError, RowError
from listing_indexer.common.fs import remove_tree
from listing_indexer.common.http import HttpClient
from listing_indexer.common.logging import log_event
from listing_indexer.common.models import RunStats, RunSummary
from listing_indexer.ingest.assemble import (
    HOST_KEY_FIELD,
    PROPERTY_KEY_FIELD,
    assemble_host,
    assemble_property,
    host_attributes,
    property_attributes,
)
from listing_indexer.ingest.dedup import HostDedupCache
from listing_indexer.ingest.normalize import clean_string
from listing_indexer.ingest.row_reader import QuoteBalancedRowReader
from listing_indexer.ingest.source import open_input
from listing_indexer.ingest.tokenizer import HeaderIndex, RawRow, tokenize
from listing_indexer.search.collection import (
    MODE_CREATE,
    MODE_CREATE_OR_APPEND,
    Attribute,
    Collection,
    open_collection,
)

INIT = "init"
CONFIGURING_TARGETS = "configuring_targets"
STREAMING_ROWS = "streaming_rows"
COMMITTING = "committing"
ABORTED = "aborted"
CLOSED = "closed"

PROPERTIES = "properties"
HOSTS = "hosts"


def open_mode_for(mode: str) -> str:
    if mode == "update":
        return MODE_CREATE_OR_APPEND
    return MODE_CREATE


class IngestionOrchestrator:
    def __init__(
        self,
        settings: IndexerSettings,
        logger: logging.Logger,
        run_id: str,
        *,
        http_client: HttpClient | None = None,
        collection_opener: Callable[..., Collection] = open_collection,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self.run_id = run_id
        self.http_client = http_client
        self.collection_opener = collection_opener
        self.state = INIT
        self.stats = RunStats()
        self.dedup = HostDedupCache()
        self.collections: dict[str, Collection] = {}
        self.commits = 0

    def _log(self, message: str, *, level: str = "info", **fields: Any) -> None:
        fields.setdefault("stage", self.state)
        log_event(self.logger, message, level=level, run_id=self.run_id, **fields)

    def _configure_targets(self) -> None:
        self.state = CONFIGURING_TARGETS
        settings = self.settings
        if settings.force and settings.mode != "rebuild":
            self._log("--force is only used with --mode rebuild; ignoring", level="warn", event="CONFIG", status="ignored")

        if settings.dry_run:
            self._log("dry run: collections are not opened", event="COLLECTIONS_OPEN", status="skipped")
            return

        targets = {PROPERTIES: settings.properties_path, HOSTS: settings.hosts_path}
        if settings.mode == "rebuild" and settings.force:
            for name, path in targets.items():
                try:
                    removed = remove_tree(path)
                except OSError as exc:
                    raise CollectionError(f"Unable to remove collection {path}: {exc}") from exc
                if removed:
                    self._log(f"removed collection {path}", collection=name, event="COLLECTION_RESET", status="ok")

        open_mode = open_mode_for(settings.mode)
        for name, path in targets.items():
            self.collections[name] = self.collection_opener(path, open_mode)
        self._log(
            f"collections open ({open_mode}) under {settings.index_root}",
            event="COLLECTIONS_OPEN",
            status="ok",
        )

    def _upsert(self, name: str, key_field: str, key_value: Any, attributes: dict[str, Attribute], row_number: int) -> None:
        if self.settings.dry_run:
            self._log(
                f"DRY-RUN upsert {key_field}={key_value}",
                level="debug",
                collection=name,
                row_number=row_number,
                event="DRY_RUN_UPSERT",
                status="ok",
            )
            return
        self.collections[name].upsert(key_field, key_value, attributes)

    def process_row(self, row: RawRow) -> None:
        """Upsert the property for ``row`` and its host the first time that host is seen."""
        settings = self.settings
        if clean_string(row.get_string(settings.id_field)) is None:
            raise RowError(f"missing required identifier column {settings.id_field!r}")

        record = assemble_property(row, settings.id_field, settings.host_id_field)
        if record is None:
            self.stats.properties_skipped += 1
            self._log(
                f"row {row.row_number}: identifier {row.get_string(settings.id_field)!r} is not numeric; property skipped",
                level="warn",
                row_number=row.row_number,
                event="ROW_SKIPPED",
                status="skipped",
            )
        else:
            self._upsert(PROPERTIES, PROPERTY_KEY_FIELD, record.id, property_attributes(record), row.row_number)
            self.stats.properties_indexed += 1

        host_id = clean_string(row.get_string(settings.host_id_field))
        if host_id is None or self.dedup.seen(host_id):
            return
        host = assemble_host(row, settings.host_id_field)
        if host is None:
            return
        self._upsert(HOSTS, HOST_KEY_FIELD, host.host_id, host_attributes(host), row.row_number)
        self.dedup.mark_seen(host_id)
        self.stats.hosts_indexed += 1

    def _record_error(self, row_number: int, exc: Exception) -> None:
        self.stats.errors += 1
        error_code = getattr(exc, "error_code", "ROW_ERROR")
        self._log(
            f"error processing row {row_number}: {exc}",
            level="error",
            row_number=row_number,
            event="ROW_ERROR",
            status="error",
            error_code=error_code,
        )
        if self.stats.exceeds(self.settings.max_errors):
            raise ErrorBudgetExceeded(
                f"Too many row errors: {self.stats.errors} > max-errors {self.settings.max_errors}"
            )

    def commit(self) -> None:
        for collection in self.collections.values():
            collection.commit()
        self.commits += 1

    def _stream_rows(self, stream: TextIO) -> None:
        self.state = STREAMING_ROWS
        settings = self.settings
        reader = QuoteBalancedRowReader(stream)

        header_text = reader.next_logical_row()
        if header_text is None:
            self._log(f"empty input: {settings.input}", level="warn", event="HEADER", status="empty")
            return
        header = HeaderIndex.from_cells(tokenize(header_text, settings.delimiter))
        self._log(f"header parsed with {len(header.positions)} columns", event="HEADER", status="ok")
        missing = header.missing([settings.id_field, settings.host_id_field])
        if missing:
            self._log(f"header lacks columns: {', '.join(missing)}", level="warn", event="HEADER", status="incomplete")

        since_commit = 0
        for row_text in reader:
            if not row_text.strip():
                continue
            self.stats.rows_read += 1
            row_number = self.stats.rows_read
            try:
                self.process_row(RawRow(tokenize(row_text, settings.delimiter), header, row_number))
            except CollectionError:
                raise
            except Exception as exc:
                self._record_error(row_number, exc)
                continue

            since_commit += 1
            if since_commit >= settings.commit_window:
                self.commit()
                since_commit = 0
                self._log(
                    f"commit: properties={self.stats.properties_indexed} hosts={self.stats.hosts_indexed}",
                    level="debug",
                    event="COMMIT",
                    status="ok",
                    rows_in=self.stats.rows_read,
                )

        if reader.truncated_at_eof:
            self._log("input ended inside a quoted field; last row kept as read", level="warn", event="ROW_SKIPPED", status="truncated")

    def _close_targets(self, *, commit: bool) -> None:
        """Close every open collection; a later close still runs if an earlier one fails."""
        first_error: CollectionError | None = None
        for name, collection in self.collections.items():
            if collection.closed:
                continue
            try:
                if commit:
                    collection.commit()
                collection.close()
            except CollectionError as exc:
                self._log(str(exc), level="error", collection=name, event="COLLECTIONS_CLOSED", status="error", error_code=exc.error_code)
                first_error = first_error or exc
        if first_error is not None:
            raise first_error
        if self.collections:
            self._log("collections closed", event="COLLECTIONS_CLOSED", status="ok")

    def summary(self, status: str, elapsed_ms: int) -> RunSummary:
        return RunSummary(
            run_id=self.run_id,
            status=status,
            mode=self.settings.mode,
            dry_run=self.settings.dry_run,
            rows_read=self.stats.rows_read,
            properties_indexed=self.stats.properties_indexed,
            hosts_indexed=self.stats.hosts_indexed,
            properties_skipped=self.stats.properties_skipped,
            errors=self.stats.errors,
            elapsed_ms=elapsed_ms,
            commits=self.commits,
        )

    def _emit_summary(self, summary: RunSummary) -> None:
        self._log(
            (
                f"summary: properties={summary.properties_indexed} hosts={summary.hosts_indexed} "
                f"skipped={summary.properties_skipped} errors={summary.errors} elapsed_ms={summary.elapsed_ms}"
            ),
            level="info" if summary.status == "success" else "error",
            event="RUN_SUMMARY",
            status=summary.status,
            duration_ms=summary.elapsed_ms,
            rows_in=summary.rows_read,
            rows_out=summary.properties_indexed + summary.hosts_indexed,
        )

    def _release_after_failure(self) -> None:
        try:
            self._close_targets(commit=False)
        except CollectionError:
            # Logged by _close_targets; the failure already in flight is the one that propagates.
            pass

    def _elapsed_ms(self, started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _ingest(self) -> None:
        self._configure_targets()
        with open_input(self.settings.input, self.settings.encoding, self.http_client) as stream:
            try:
                self._stream_rows(stream)
            except UnicodeDecodeError as exc:
                raise InputError(f"Unable to decode input as {self.settings.encoding}: {exc}") from exc
            except OSError as exc:
                raise InputError(f"Unable to read input {self.settings.input}: {exc}") from exc
        self.state = COMMITTING
        self._close_targets(commit=True)

    def run(self) -> RunSummary:
        """Run the whole ingestion and return its summary.

        The summary is logged before any failure propagates. On budget
        exhaustion the collections are closed without a final commit, so only
        rows covered by earlier periodic commits persist, and
        ``ErrorBudgetExceeded`` carries the summary.
        """
        started = time.monotonic()
        self._log(f"ingesting {self.settings.input}", event="RUN_START", status="ok")
        self._log(
            (
                f"mode={self.settings.mode} delimiter={self.settings.delimiter!r} encoding={self.settings.encoding} "
                f"id_field={self.settings.id_field} threads={self.settings.threads} "
                f"max_errors={self.settings.max_errors} commit_window={self.settings.commit_window} "
                f"dry_run={self.settings.dry_run}"
            ),
            event="CONFIG",
            status="ok",
        )
        try:
            self._ingest()
        except ErrorBudgetExceeded as exc:
            self.state = ABORTED
            self._log(str(exc), level="error", event="ERROR_BUDGET_EXCEEDED", status="error", error_code=exc.error_code)
            self._release_after_failure()
            summary = self.summary("aborted", self._elapsed_ms(started))
            self._emit_summary(summary)
            self.state = CLOSED
            raise ErrorBudgetExceeded(str(exc), summary=summary) from exc
        except BaseException:
            self._release_after_failure()
            self._emit_summary(self.summary("failed", self._elapsed_ms(started)))
            self.state = CLOSED
            raise

        summary = self.summary("success", self._elapsed_ms(started))
        self._emit_summary(summary)
        self.state = CLOSED
        return summary
