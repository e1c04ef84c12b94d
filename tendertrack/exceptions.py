"""Exceptions raised by the ingestion engine and its storage layer."""


class TendertrackError(Exception):
    """Base exception for tendertrack errors."""


class WorkbookError(TendertrackError):
    """The uploaded file is empty, unreadable or not a spreadsheet."""

    def __init__(self, message: str, file_name: str | None = None):
        super().__init__(message)
        self.file_name = file_name


class PersistenceUnavailableError(TendertrackError):
    """The database could not be reached; the whole upload should be retried."""


class DuplicateRecordError(TendertrackError):
    """An insert violated an identity-key unique constraint."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class InvalidTransitionError(TendertrackError):
    """A tender status change is not allowed by the state machine."""

    def __init__(self, old_status, new_status):
        old_name = getattr(old_status, "value", old_status)
        new_name = getattr(new_status, "value", new_status)
        super().__init__(f"Cannot move tender from {old_name} to {new_name}")
        self.old_status = old_status
        self.new_status = new_status


class RecordNotFoundError(TendertrackError):
    """A referenced tender does not exist."""


class IngestionCancelled(TendertrackError):
    """The caller cancelled an upload between rows."""
