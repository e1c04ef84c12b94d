"""SQLAlchemy models for the tendertrack database."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    String,
    Text,
    Integer,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Enum,
    JSON,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TenderStatus(PyEnum):
    """Tender workflow states."""
    DRAFT = "draft"
    ACTIVE = "active"
    ASSIGNED = "assigned"
    SUBMITTED = "submitted"
    WON = "won"
    LOST = "lost"
    MISSED_OPPORTUNITY = "missed_opportunity"
    NOT_RELEVANT = "not_relevant"


class TenderSource(PyEnum):
    """Channel a tender was published on."""
    GEM = "gem"
    NON_GEM = "non_gem"
    PORTAL = "portal"


class ResultStatus(PyEnum):
    """Outcome of a concluded tender relative to the tracked company."""
    WON = "won"
    LOST = "lost"
    MISSED_OPPORTUNITY = "missed_opportunity"


class UploadStatus(PyEnum):
    """Final state of a spreadsheet upload."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Tender(Base):
    """Procurement opportunity imported from a spreadsheet."""
    __tablename__ = "tenders"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(Text)
    title_digest: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, comment="SHA-256 of the exact title"
    )
    external_id: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, index=True, comment="Source spreadsheet id, e.g. T247 ID"
    )
    organization: Mapped[str] = mapped_column(String(500), default="Unknown")
    description: Mapped[Optional[str]] = mapped_column(Text)
    value: Mapped[int] = mapped_column(
        BigInteger, default=0, comment="Minor currency units (paise)"
    )
    deadline: Mapped[datetime] = mapped_column(DateTime, index=True)
    status: Mapped[TenderStatus] = mapped_column(
        Enum(TenderStatus), default=TenderStatus.ACTIVE, index=True
    )
    source: Mapped[TenderSource] = mapped_column(
        Enum(TenderSource), default=TenderSource.NON_GEM, index=True
    )
    ai_score: Mapped[Optional[int]] = mapped_column(Integer, comment="0-100")
    location: Mapped[Optional[str]] = mapped_column(String(255))
    assigned_to: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    link: Mapped[Optional[str]] = mapped_column(Text)
    requirements: Mapped[Optional[list]] = mapped_column(
        JSONType, comment="Ordered key/value annotations"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    activity_logs: Mapped[list["ActivityLog"]] = relationship(
        back_populates="tender", order_by="ActivityLog.id"
    )

    __table_args__ = (
        Index("ix_tenders_status_deadline", "status", "deadline"),
    )

    def requirement(self, key: str) -> Optional[str]:
        """Return the first annotation value stored under ``key``."""
        for item in self.requirements or []:
            if item.get("key") == key:
                return item.get("value")
        return None

    def __repr__(self) -> str:
        return f"<Tender {self.id}: {self.title[:40]}>"


class TenderResult(Base):
    """Outcome of a concluded tender."""
    __tablename__ = "tender_results"

    id: Mapped[int] = mapped_column(primary_key=True)
    tender_title: Mapped[str] = mapped_column(Text)
    title_digest: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    external_id: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, index=True
    )
    organization: Mapped[str] = mapped_column(String(500), default="Unknown")
    reference_no: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    department: Mapped[Optional[str]] = mapped_column(String(255))
    tender_value: Mapped[Optional[int]] = mapped_column(BigInteger)
    contract_value: Mapped[Optional[int]] = mapped_column(BigInteger)
    marginal_difference: Mapped[Optional[int]] = mapped_column(
        BigInteger, comment="contract_value - tender_value"
    )
    awarded_to: Mapped[Optional[str]] = mapped_column(Text)
    participator_bidders: Mapped[Optional[list]] = mapped_column(JSONType)
    result_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[ResultStatus] = mapped_column(Enum(ResultStatus), index=True)
    tender_stage: Mapped[Optional[str]] = mapped_column(String(100))
    ai_match_score: Mapped[Optional[int]] = mapped_column(Integer)
    company_eligible: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<TenderResult {self.id} [{self.status.value}]>"


class ExcelUpload(Base):
    """Append-only audit row, one per ingestion call."""
    __tablename__ = "excel_uploads"

    id: Mapped[int] = mapped_column(primary_key=True)
    file_name: Mapped[str] = mapped_column(String(255))
    file_path: Mapped[str] = mapped_column(
        String(500), comment="sha256:<digest> of the uploaded bytes"
    )
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(100))
    upload_kind: Mapped[str] = mapped_column(String(20), index=True)
    entries_added: Mapped[int] = mapped_column(Integer, default=0)
    entries_duplicate: Mapped[int] = mapped_column(Integer, default=0)
    entries_rejected: Mapped[int] = mapped_column(Integer, default=0)
    total_entries: Mapped[int] = mapped_column(Integer, default=0)
    sheets_processed: Mapped[int] = mapped_column(Integer, default=0)
    gem_added: Mapped[int] = mapped_column(Integer, default=0)
    non_gem_added: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[UploadStatus] = mapped_column(Enum(UploadStatus), index=True)
    error_log: Mapped[Optional[str]] = mapped_column(Text)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), index=True
    )

    def __repr__(self) -> str:
        return f"<ExcelUpload {self.file_name}: {self.status.value}>"


class ActivityLog(Base):
    """State change recorded against a tender."""
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    tender_id: Mapped[int] = mapped_column(ForeignKey("tenders.id"), index=True)
    action: Mapped[str] = mapped_column(
        String(50), index=True,
        comment="missed_opportunity, reactivated, deadline_extended, status_change"
    )
    actor: Mapped[Optional[str]] = mapped_column(String(100))
    details: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    # Relationships
    tender: Mapped["Tender"] = relationship(back_populates="activity_logs")

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} tender={self.tender_id}>"
