"""Spreadsheet ingestion: tenders and tender results."""

from .base import BaseIngestor, UploadSummary, RowError
from .classifier import RowClassifier, KeywordScorer, TenderClassification, ResultClassification
from .duplicates import DuplicateDetector, IdentityKey, identity_keys, title_digest
from .headers import FieldSpec, HeaderResolution, TENDER_FIELDS, RESULT_FIELDS, resolve_headers
from .progress import ProgressUpdate, SafeProgress, RichProgressReporter
from .results import ResultIngestor, ingest_results
from .tenders import TenderIngestor, ingest_tenders
from .walker import SheetWalker
from .workbook import Sheet, open_workbook

INGESTORS = {
    "tenders": TenderIngestor,
    "results": ResultIngestor,
}

__all__ = [
    "BaseIngestor",
    "UploadSummary",
    "RowError",
    "RowClassifier",
    "KeywordScorer",
    "TenderClassification",
    "ResultClassification",
    "DuplicateDetector",
    "IdentityKey",
    "identity_keys",
    "title_digest",
    "FieldSpec",
    "HeaderResolution",
    "TENDER_FIELDS",
    "RESULT_FIELDS",
    "resolve_headers",
    "ProgressUpdate",
    "SafeProgress",
    "RichProgressReporter",
    "ResultIngestor",
    "ingest_results",
    "TenderIngestor",
    "ingest_tenders",
    "SheetWalker",
    "Sheet",
    "open_workbook",
    "INGESTORS",
]
