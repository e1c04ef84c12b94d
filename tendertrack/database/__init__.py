"""Database models, sessions and the persistence store."""

from .models import (
    Base,
    Tender,
    TenderResult,
    ExcelUpload,
    ActivityLog,
    TenderStatus,
    TenderSource,
    ResultStatus,
    UploadStatus,
)
from .connection import configure, get_engine, get_session, get_session_factory, init_db, drop_db
from .store import TenderStore

__all__ = [
    "Base",
    "Tender",
    "TenderResult",
    "ExcelUpload",
    "ActivityLog",
    "TenderStatus",
    "TenderSource",
    "ResultStatus",
    "UploadStatus",
    "configure",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "drop_db",
    "TenderStore",
]
