"""Base class for spreadsheet ingestors."""

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from tendertrack.config import config
from tendertrack.database import TenderStore
from tendertrack.exceptions import (
    DuplicateRecordError,
    IngestionCancelled,
    PersistenceUnavailableError,
    WorkbookError,
)
from .classifier import KeywordScorer, RowClassifier
from .headers import FieldSpec, with_overrides
from .progress import ProgressCallback, ProgressUpdate, SafeProgress, percent
from .walker import RowContext, SheetWalker
from .workbook import open_workbook

logger = logging.getLogger(__name__)

MAX_ROW_ERRORS = 100

ADDED = "added"
DUPLICATE = "duplicate"


@dataclass
class RowError:
    sheet: str
    row: int
    message: str

    def __str__(self) -> str:
        return f"{self.sheet} row {self.row}: {self.message}"


@dataclass
class UploadSummary:
    """Outcome of one ingestion call; mirrors its upload audit row."""
    kind: str
    file_name: str
    file_path: str = ""
    uploaded_by: Optional[str] = None
    success: bool = True
    status: str = "completed"
    records_added: int = 0
    duplicates_skipped: int = 0
    errors_encountered: int = 0
    sheets_processed: int = 0
    sheets_skipped: int = 0
    gem_added: int = 0
    non_gem_added: int = 0
    reactivated: int = 0
    total_rows: int = 0
    processing_time_ms: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None
    upload_id: Optional[int] = None
    row_errors: list[RowError] = field(default_factory=list)
    skipped_sheet_names: list[str] = field(default_factory=list)

    @property
    def tenders_processed(self) -> int:
        return self.records_added

    @property
    def results_processed(self) -> int:
        return self.records_added

    @property
    def rows_handled(self) -> int:
        return self.records_added + self.duplicates_skipped + self.errors_encountered

    def add_row_error(self, sheet: str, row: int, message: str) -> None:
        self.errors_encountered += 1
        if len(self.row_errors) < MAX_ROW_ERRORS:
            self.row_errors.append(RowError(sheet, row, message))

    def fail(self, kind: str, message: str) -> None:
        self.success = False
        self.status = "failed"
        self.error_kind = kind
        self.error = message

    def error_log(self) -> Optional[str]:
        """Text stored in the audit row's error_log column."""
        lines = []
        if self.error:
            lines.append(f"[{self.error_kind}] {self.error}")
        lines.extend(f"Skipped sheet: {name}" for name in self.skipped_sheet_names)
        lines.extend(str(e) for e in self.row_errors)
        if self.errors_encountered > len(self.row_errors):
            lines.append(f"... {self.errors_encountered - len(self.row_errors)} more row errors")
        return "\n".join(lines) if lines else None

    def progress(self, completed: bool = False) -> ProgressUpdate:
        return ProgressUpdate(
            processed=self.records_added,
            duplicates=self.duplicates_skipped,
            total=self.total_rows,
            percentage=self._percentage(completed),
            gem_added=self.gem_added,
            non_gem_added=self.non_gem_added,
            errors=self.errors_encountered,
            completed=completed,
        )

    def _percentage(self, completed: bool) -> int:
        if completed and self.status == "completed":
            return 100
        if not self.total_rows:
            return 0
        return percent(self.rows_handled, self.total_rows)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["row_errors"] = [str(e) for e in self.row_errors]
        data[f"{self.kind}_processed"] = self.records_added
        return data


class BaseIngestor(ABC):
    """
    Base class for spreadsheet ingestors.

    Subclasses declare their field table and turn one data row into a
    persisted record. This class owns everything around that: opening the
    workbook, walking sheets, per-row error isolation, progress, cancellation
    and the single upload audit row.
    """

    kind: str = "base"
    fields: tuple[FieldSpec, ...] = ()

    def __init__(self, store: Optional[TenderStore] = None, classifier: Optional[RowClassifier] = None):
        self.store = store or TenderStore()
        self.classifier = classifier or RowClassifier(
            config.tracked_company_aliases,
            KeywordScorer.from_config(config.scoring),
        )
        self.progress_interval = config.progress_interval
        self.min_title_length = config.min_title_length

    def field_table(self) -> tuple[FieldSpec, ...]:
        return with_overrides(self.fields, config.header_synonyms.get(self.kind))

    def ingest(
        self,
        data: bytes,
        file_name: str,
        uploaded_by: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> UploadSummary:
        """
        Ingest one uploaded spreadsheet.

        Args:
            data: Raw file bytes.
            file_name: Original file name (selects the reader, kept for audit).
            uploaded_by: User recorded on the audit row.
            on_progress: Receives ProgressUpdate snapshots; its failures are
                logged and ignored.
            cancel: Checked before each row; when set, processing stops and
                the audit row is written as cancelled.

        Returns:
            UploadSummary. Errors are reported in the summary, never raised.
        """
        started = time.monotonic()
        summary = UploadSummary(
            kind=self.kind,
            file_name=file_name,
            file_path="sha256:" + hashlib.sha256(data or b"").hexdigest(),
            uploaded_by=uploaded_by,
        )
        progress = SafeProgress(on_progress)
        logger.info("Starting %s upload '%s' by %s", self.kind, file_name, uploaded_by or "unknown")

        try:
            self._run(data, file_name, summary, progress, cancel)
        except WorkbookError as e:
            logger.warning("Upload '%s' rejected: %s", file_name, e)
            summary.fail("file", str(e))
        except PersistenceUnavailableError as e:
            logger.error("Database unavailable during upload '%s': %s", file_name, e)
            summary.fail("persistence_unavailable", str(e))
        except IngestionCancelled:
            logger.info("Upload '%s' cancelled after %d rows", file_name, summary.rows_handled)
            summary.success = False
            summary.status = "cancelled"
            summary.error_kind = "cancelled"
            summary.error = "Upload cancelled"
        except Exception as e:
            logger.exception("Upload '%s' failed unexpectedly", file_name)
            summary.fail("file", f"Could not process file: {e}")

        progress(summary.progress(completed=True))
        summary.processing_time_ms = int((time.monotonic() - started) * 1000)
        self._write_audit(summary)

        if summary.status == "completed":
            self.after_upload(summary)

        logger.info(
            "Finished %s upload '%s': %d added, %d duplicates, %d errors in %d ms",
            self.kind, file_name, summary.records_added, summary.duplicates_skipped,
            summary.errors_encountered, summary.processing_time_ms,
        )
        return summary

    def _run(self, data, file_name, summary, progress, cancel) -> None:
        sheets = open_workbook(data, file_name)
        walker = SheetWalker(sheets, self.field_table(), self.min_title_length)

        summary.sheets_processed = len(walker.processed_sheets)
        summary.sheets_skipped = len(walker.skipped_sheets)
        summary.skipped_sheet_names = [
            f"{p.sheet.name} ({p.skipped_reason})" for p in walker.skipped_sheets
        ]
        summary.total_rows = walker.total_rows

        self.before_upload(file_name)

        for row in walker.rows():
            if cancel is not None and cancel.is_set():
                raise IngestionCancelled()

            self._process(row, summary)

            if summary.rows_handled % self.progress_interval == 0:
                progress(summary.progress())

    def _process(self, row: RowContext, summary: UploadSummary) -> None:
        try:
            outcome = self.process_row(row, summary)
        except PersistenceUnavailableError:
            raise
        except DuplicateRecordError:
            summary.duplicates_skipped += 1
            return
        except Exception as e:
            logger.warning("Sheet '%s' row %d failed: %s", row.sheet_name, row.row_number, e)
            summary.add_row_error(row.sheet_name, row.row_number, str(e))
            return

        if outcome == ADDED:
            summary.records_added += 1
        else:
            summary.duplicates_skipped += 1

    def _write_audit(self, summary: UploadSummary) -> None:
        try:
            summary.upload_id = self.store.record_upload_audit(summary)
        except (PersistenceUnavailableError, SQLAlchemyError) as e:
            logger.error("Could not record upload audit for '%s': %s", summary.file_name, e)

    def before_upload(self, file_name: str) -> None:
        """Hook run once the workbook is open, before the first row."""

    def after_upload(self, summary: UploadSummary) -> None:
        """Hook run after a completed upload's audit row is written."""

    @abstractmethod
    def process_row(self, row: RowContext, summary: UploadSummary) -> str:
        """
        Persist one data row.

        Returns:
            ADDED for a new record, DUPLICATE for an existing one. Raising
            DuplicateRecordError also counts as a duplicate; any other
            exception counts as a row error.
        """
        pass
