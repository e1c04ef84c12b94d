"""
Persistence contract used by the ingestion engine and the sweeper.

Every public method runs in its own short session so no transaction ever
spans a whole upload. Connection failures surface as
PersistenceUnavailableError; identity-key unique violations on insert surface
as DuplicateRecordError.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from tendertrack.exceptions import (
    DuplicateRecordError,
    PersistenceUnavailableError,
    RecordNotFoundError,
)
from .connection import get_session_factory
from .models import ActivityLog, ExcelUpload, Tender, TenderStatus, UploadStatus

logger = logging.getLogger(__name__)

# Columns whose unique indexes identify a record
IDENTITY_COLUMNS = ("external_id", "title_digest")


def is_identity_violation(error: IntegrityError) -> bool:
    """True when ``error`` is a unique violation on an identity column."""
    message = str(error.orig or error).lower()
    return "unique" in message and any(column in message for column in IDENTITY_COLUMNS)


class TenderStore:
    """SQLAlchemy-backed store for tenders, results, audits and activity."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session that commits on success and maps connectivity errors."""
        factory = self._session_factory or get_session_factory()
        try:
            session = factory()
        except (OperationalError, InterfaceError) as e:
            raise PersistenceUnavailableError(str(e)) from e

        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except (OperationalError, InterfaceError) as e:
            session.rollback()
            raise PersistenceUnavailableError(str(e.orig or e)) from e
        except DBAPIError as e:
            session.rollback()
            if e.connection_invalidated:
                raise PersistenceUnavailableError(str(e.orig or e)) from e
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Identity lookups and inserts
    # ------------------------------------------------------------------

    def find_by_identity(self, key, model=Tender):
        """
        Look up a record by one identity key.

        Args:
            key: Object with ``field`` ("external_id" or "title_digest") and
                ``value`` attributes.
            model: Tender or TenderResult.

        Returns:
            The matching record, or None.
        """
        column = getattr(model, key.field)
        with self.session() as session:
            return session.execute(
                select(model).where(column == key.value).limit(1)
            ).scalar_one_or_none()

    def insert(self, record):
        """
        Insert a new record.

        Raises:
            DuplicateRecordError: If an identity-key unique constraint fails.
            IntegrityError: For any other constraint violation.
        """
        try:
            with self.session() as session:
                session.add(record)
                session.flush()
        except IntegrityError as e:
            if not is_identity_violation(e):
                raise
            key = getattr(record, "external_id", None) or getattr(record, "title_digest", None)
            raise DuplicateRecordError(str(e.orig or e), key=key) from e
        return record

    # ------------------------------------------------------------------
    # Tender mutations
    # ------------------------------------------------------------------

    def get_tender(self, tender_id: int) -> Optional[Tender]:
        with self.session() as session:
            return session.get(Tender, tender_id)

    def update_status(
        self,
        tender_id: int,
        new_status: TenderStatus,
        metadata: Optional[dict] = None,
        actor: Optional[str] = None,
    ) -> TenderStatus:
        """
        Move a tender to ``new_status`` and log the change.

        The transition is validated against the status state machine. When
        ``metadata`` is given it becomes the activity log payload; its
        ``action`` key names the log action (default ``status_change``).

        Returns:
            The previous status.
        """
        from tendertrack.lifecycle.states import validate_transition

        with self.session() as session:
            tender = session.get(Tender, tender_id)
            if tender is None:
                raise RecordNotFoundError(f"Tender {tender_id} not found")

            old_status = tender.status
            validate_transition(old_status, new_status)
            tender.status = new_status
            tender.updated_at = datetime.now()

            details = dict(metadata or {})
            action = details.pop("action", "status_change")
            details.setdefault("previous_status", old_status.value)
            details.setdefault("new_status", new_status.value)
            session.add(ActivityLog(
                tender_id=tender_id,
                action=action,
                actor=actor,
                details=details,
            ))
            return old_status

    def update_deadline(
        self,
        tender_id: int,
        deadline: datetime,
        metadata: Optional[dict] = None,
        actor: Optional[str] = None,
    ) -> None:
        """Replace a tender's deadline, logging a deadline_extended entry."""
        with self.session() as session:
            tender = session.get(Tender, tender_id)
            if tender is None:
                raise RecordNotFoundError(f"Tender {tender_id} not found")

            old_deadline = tender.deadline
            tender.deadline = deadline
            tender.updated_at = datetime.now()

            details = {
                "old_deadline": old_deadline.isoformat() if old_deadline else None,
                "new_deadline": deadline.isoformat(),
                **(metadata or {}),
            }
            action = details.pop("action", "deadline_extended")
            session.add(ActivityLog(
                tender_id=tender_id,
                action=action,
                actor=actor,
                details=details,
            ))

    def reactivate(
        self,
        tender_id: int,
        deadline: datetime,
        metadata: Optional[dict] = None,
        actor: Optional[str] = None,
    ) -> TenderStatus:
        """
        Extend a missed opportunity's deadline and move it back to active.

        Deadline, status and both activity entries (deadline_extended, then
        reactivated) are written in one transaction.

        Returns:
            The previous status.
        """
        from tendertrack.lifecycle.states import validate_transition

        context = dict(metadata or {})
        with self.session() as session:
            tender = session.get(Tender, tender_id)
            if tender is None:
                raise RecordNotFoundError(f"Tender {tender_id} not found")

            old_status = tender.status
            old_deadline = tender.deadline
            validate_transition(old_status, TenderStatus.ACTIVE)
            tender.deadline = deadline
            tender.status = TenderStatus.ACTIVE
            tender.updated_at = datetime.now()

            session.add(ActivityLog(
                tender_id=tender_id,
                action="deadline_extended",
                actor=actor,
                details={
                    "old_deadline": old_deadline.isoformat() if old_deadline else None,
                    "new_deadline": deadline.isoformat(),
                    **context,
                },
            ))
            session.add(ActivityLog(
                tender_id=tender_id,
                action="reactivated",
                actor=actor,
                details={
                    "reason": "deadline_extended",
                    "deadline": deadline.isoformat(),
                    "previous_status": old_status.value,
                    "new_status": TenderStatus.ACTIVE.value,
                    **context,
                },
            ))
            return old_status

    def append_activity_log(
        self,
        tender_id: int,
        action: str,
        details: Optional[dict] = None,
        actor: Optional[str] = None,
    ) -> int:
        """Append one activity log entry and return its id."""
        with self.session() as session:
            entry = ActivityLog(
                tender_id=tender_id,
                action=action,
                actor=actor,
                details=details,
            )
            session.add(entry)
            session.flush()
            return entry.id

    def activity_for(self, tender_id: int) -> list[ActivityLog]:
        with self.session() as session:
            return list(session.execute(
                select(ActivityLog)
                .where(ActivityLog.tender_id == tender_id)
                .order_by(ActivityLog.id)
            ).scalars())

    def find_expired_unassigned(self, now: datetime) -> list[Tender]:
        """Active tenders past their deadline with nobody assigned."""
        with self.session() as session:
            return list(session.execute(
                select(Tender).where(
                    Tender.status == TenderStatus.ACTIVE,
                    Tender.deadline < now,
                    or_(Tender.assigned_to.is_(None), Tender.assigned_to == ""),
                ).order_by(Tender.deadline)
            ).scalars())

    # ------------------------------------------------------------------
    # Upload audit
    # ------------------------------------------------------------------

    def record_upload_audit(self, summary) -> int:
        """
        Write the single audit row for an upload.

        Args:
            summary: UploadSummary of the finished (or failed) upload.

        Returns:
            ID of the created ExcelUpload row.
        """
        with self.session() as session:
            upload = ExcelUpload(
                file_name=summary.file_name,
                file_path=summary.file_path,
                uploaded_by=summary.uploaded_by,
                upload_kind=summary.kind,
                entries_added=summary.records_added,
                entries_duplicate=summary.duplicates_skipped,
                entries_rejected=summary.errors_encountered,
                total_entries=summary.records_added + summary.duplicates_skipped,
                sheets_processed=summary.sheets_processed,
                gem_added=summary.gem_added,
                non_gem_added=summary.non_gem_added,
                status=UploadStatus(summary.status),
                error_log=summary.error_log(),
                processing_time_ms=summary.processing_time_ms,
            )
            session.add(upload)
            session.flush()
            return upload.id

    def list_uploads(self, limit: int = 20, kind: Optional[str] = None) -> list[ExcelUpload]:
        with self.session() as session:
            query = select(ExcelUpload).order_by(ExcelUpload.id.desc()).limit(limit)
            if kind:
                query = query.where(ExcelUpload.upload_kind == kind)
            return list(session.execute(query).scalars())
