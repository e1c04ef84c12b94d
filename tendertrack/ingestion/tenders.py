"""
Active tender ingestion.

Reads tender listing spreadsheets (T247 exports, GeM downloads, hand-made
sheets) and adds each net-new tender as an active record.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote_plus

from tendertrack.config import config
from tendertrack.database import Tender, TenderSource
from tendertrack.lifecycle import reactivate_if_extended, sweep_missed_opportunities
from tendertrack.normalization import extract_url, normalize_currency, normalize_date
from .base import ADDED, DUPLICATE, BaseIngestor, UploadSummary
from .classifier import TenderClassification
from .duplicates import DuplicateDetector, title_digest
from .headers import TENDER_FIELDS
from .walker import RowContext

logger = logging.getLogger(__name__)

GEM_SEARCH_URL = "https://gem.gov.in/tender/search?q="
EPROCURE_SEARCH_URL = "https://eprocure.gov.in/eprocure/app?searchTender="
TENDER247_SEARCH_URL = "https://tender247.com/tender-search?ref="

# Annotation key -> field name, in stored order
REQUIREMENT_FIELDS = (
    ("location", "location"),
    ("reference", "reference_no"),
    ("department", "department"),
    ("category", "category"),
)
OPTIONAL_REQUIREMENTS = (
    "turnover", "emd", "document_fees", "msme_exemption", "startup_exemption",
    "eligibility", "checklist", "quantity",
)


@dataclass
class TenderDraft:
    """Normalized tender row, not yet persisted."""
    title: str
    organization: str
    value: int
    deadline: datetime
    deadline_parsed: bool
    external_id: Optional[str] = None
    location: Optional[str] = None
    reference_no: Optional[str] = None
    source_text: str = ""
    link: Optional[str] = None
    description: Optional[str] = None
    requirements: list[dict] = field(default_factory=list)

    @property
    def fields(self) -> dict:
        return {
            "title": self.title,
            "organization": self.organization,
            "source": self.source_text,
        }

    def to_model(self, classification: TenderClassification, ai_score: int) -> Tender:
        return Tender(
            title=self.title,
            title_digest=title_digest(self.title),
            external_id=self.external_id,
            organization=self.organization,
            description=self.description,
            value=self.value,
            deadline=self.deadline,
            status=classification.status,
            source=classification.source,
            ai_score=ai_score,
            location=self.location,
            link=self.link,
            requirements=self.requirements,
        )


def portal_link(reference_no: Optional[str], source: TenderSource, source_text: str = "") -> Optional[str]:
    """Search URL on the publishing portal built from a reference number."""
    if not reference_no:
        return None
    ref = quote_plus(reference_no)
    if source == TenderSource.GEM:
        return GEM_SEARCH_URL + ref
    if "eprocure" in source_text.lower():
        return EPROCURE_SEARCH_URL + ref
    return TENDER247_SEARCH_URL + ref


class TenderIngestor(BaseIngestor):
    """Ingests active tender spreadsheets."""

    kind = "tenders"
    fields = TENDER_FIELDS

    def __init__(self, store=None, classifier=None, sweep_after: Optional[bool] = None):
        super().__init__(store, classifier)
        self.currency_scale = config.currency_scale
        self.dayfirst = config.date_dayfirst
        self.default_deadline_days = config.default_deadline_days
        self.sweep_after = config.sweep_after_ingest if sweep_after is None else sweep_after
        self.detector = DuplicateDetector(self.store, Tender)
        self.file_name = ""

    def before_upload(self, file_name: str) -> None:
        self.detector = DuplicateDetector(self.store, Tender)
        self.file_name = file_name

    def build_draft(self, row: RowContext) -> TenderDraft:
        title = row.text("title")
        parsed = normalize_date(row.get("deadline"), default=None, dayfirst=self.dayfirst)
        deadline = parsed or datetime.now() + timedelta(days=self.default_deadline_days)

        requirements = []
        for key, name in REQUIREMENT_FIELDS:
            value = row.text(name)
            if value:
                requirements.append({"key": key, "value": value})
        requirements.append({"key": "sheet", "value": row.sheet_name})
        requirements.append({"key": "file", "value": self.file_name})
        external_id = row.text("external_id") or None
        if external_id:
            requirements.append({"key": "external_id", "value": external_id})
        for name in OPTIONAL_REQUIREMENTS:
            value = row.text(name)
            if value:
                requirements.append({"key": name, "value": value})

        return TenderDraft(
            title=title,
            organization=row.text("organization") or "Unknown",
            value=normalize_currency(row.get("value"), scale=self.currency_scale),
            deadline=deadline,
            deadline_parsed=parsed is not None,
            external_id=external_id,
            location=row.text("location") or None,
            reference_no=row.text("reference_no") or None,
            source_text=row.text("source"),
            link=row.link("title") or extract_url(title),
            description=f"Imported from {row.sheet_name} - {self.file_name}",
            requirements=requirements,
        )

    def process_row(self, row: RowContext, summary: UploadSummary) -> str:
        draft = self.build_draft(row)

        if self.detector.seen_in_upload(draft):
            return DUPLICATE

        existing = self.detector.find_existing(draft)
        if existing is not None:
            self.detector.remember(draft)
            if draft.deadline_parsed:
                self._apply_deadline(existing, draft, row, summary)
            return DUPLICATE

        classification = self.classifier.classify(draft.fields, row.sheet_name)
        if not draft.link:
            draft.link = portal_link(draft.reference_no, classification.source, draft.source_text)

        self.store.insert(draft.to_model(classification, self.classifier.score(draft.title)))
        self.detector.remember(draft)

        if classification.source == TenderSource.GEM:
            summary.gem_added += 1
        else:
            summary.non_gem_added += 1
        return ADDED

    def _apply_deadline(self, existing: Tender, draft: TenderDraft, row: RowContext, summary: UploadSummary) -> None:
        change = reactivate_if_extended(
            self.store,
            existing,
            draft.deadline,
            context={"source": "excel_upload", "file": self.file_name, "sheet": row.sheet_name},
            actor=summary.uploaded_by,
        )
        if change == "reactivated":
            summary.reactivated += 1

    def after_upload(self, summary: UploadSummary) -> None:
        if not self.sweep_after:
            return
        try:
            sweep_missed_opportunities(self.store)
        except Exception as e:
            logger.error("Post-upload missed-opportunity sweep failed: %s", e)


def ingest_tenders(
    data: bytes,
    file_name: str,
    uploaded_by: Optional[str] = None,
    on_progress=None,
    cancel=None,
    store=None,
) -> UploadSummary:
    """Ingest a tender spreadsheet with the configured settings."""
    return TenderIngestor(store).ingest(data, file_name, uploaded_by, on_progress, cancel)
