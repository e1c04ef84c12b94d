"""
Tender result ingestion.

Result sheets list concluded tenders with the winning and participating
bidders. Each row is classified as won, lost or missed relative to the tracked
company.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from tendertrack.config import config
from tendertrack.database import TenderResult
from tendertrack.normalization import is_blank, normalize_currency, normalize_date, normalize_list
from .base import ADDED, DUPLICATE, BaseIngestor, UploadSummary
from .classifier import ResultClassification
from .duplicates import DuplicateDetector, title_digest
from .headers import RESULT_FIELDS
from .walker import RowContext

logger = logging.getLogger(__name__)


@dataclass
class ResultDraft:
    """Normalized result row, not yet persisted."""
    title: str
    organization: str
    result_date: datetime
    external_id: Optional[str] = None
    reference_no: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    tender_value: Optional[int] = None
    contract_value: Optional[int] = None
    awarded_to: Optional[str] = None
    participants: list[str] = field(default_factory=list)
    stage: Optional[str] = None
    notes: Optional[str] = None

    @property
    def marginal_difference(self) -> Optional[int]:
        if self.tender_value is None or self.contract_value is None:
            return None
        return self.contract_value - self.tender_value

    def to_model(self, classification: ResultClassification) -> TenderResult:
        return TenderResult(
            tender_title=self.title,
            title_digest=title_digest(self.title),
            external_id=self.external_id,
            organization=self.organization,
            reference_no=self.reference_no,
            location=self.location,
            department=self.department,
            tender_value=self.tender_value,
            contract_value=self.contract_value,
            marginal_difference=self.marginal_difference,
            awarded_to=classification.awarded_to,
            participator_bidders=self.participants,
            result_date=self.result_date,
            status=classification.status,
            tender_stage=self.stage,
            ai_match_score=classification.ai_match_score,
            company_eligible=classification.company_eligible,
            notes=self.notes,
        )


class ResultIngestor(BaseIngestor):
    """Ingests tender result spreadsheets."""

    kind = "results"
    fields = RESULT_FIELDS

    def __init__(self, store=None, classifier=None):
        super().__init__(store, classifier)
        self.currency_scale = config.currency_scale
        self.dayfirst = config.date_dayfirst
        self.detector = DuplicateDetector(self.store, TenderResult)

    def before_upload(self, file_name: str) -> None:
        self.detector = DuplicateDetector(self.store, TenderResult)

    def _amount(self, raw: Any) -> Optional[int]:
        if is_blank(raw):
            return None
        return normalize_currency(raw, scale=self.currency_scale) or None

    def build_draft(self, row: RowContext) -> ResultDraft:
        return ResultDraft(
            title=row.text("title"),
            organization=row.text("organization") or "Unknown",
            result_date=normalize_date(
                row.get("result_date"), default=datetime.now(), dayfirst=self.dayfirst
            ),
            external_id=row.text("external_id") or None,
            reference_no=row.text("reference_no") or None,
            location=row.text("location") or None,
            department=row.text("department") or None,
            tender_value=self._amount(row.get("tender_value")),
            contract_value=self._amount(row.get("contract_value")),
            awarded_to=row.text("awarded_to") or None,
            participants=normalize_list(row.get("participants")),
            stage=row.text("stage") or None,
            notes=f"Imported from {row.sheet_name}",
        )

    def process_row(self, row: RowContext, summary: UploadSummary) -> str:
        draft = self.build_draft(row)

        if self.detector.is_duplicate(draft):
            self.detector.remember(draft)
            return DUPLICATE

        classification = self.classifier.classify_result({
            "awarded_to": draft.awarded_to,
            "participants": draft.participants,
        })
        self.store.insert(draft.to_model(classification))
        self.detector.remember(draft)
        return ADDED


def ingest_results(
    data: bytes,
    file_name: str,
    uploaded_by: Optional[str] = None,
    on_progress=None,
    cancel=None,
    store=None,
) -> UploadSummary:
    """Ingest a tender result spreadsheet with the configured settings."""
    return ResultIngestor(store).ingest(data, file_name, uploaded_by, on_progress, cancel)
