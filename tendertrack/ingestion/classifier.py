"""
Row classification.

Decides the publication channel (GeM or not) of a tender row and the outcome
of a result row relative to the tracked company, and scores tender titles for
relevance.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from tendertrack.database.models import ResultStatus, TenderSource, TenderStatus
from tendertrack.normalization import name_mentions, normalize_list, normalize_text


GEM_RE = re.compile(r"\bgem\b", re.IGNORECASE)
NON_GEM_RE = re.compile(r"\bnon[\s_\-]*gem\b", re.IGNORECASE)

WINNER_SCORE = 100
PARTICIPANT_SCORE = 85
MISSED_SCORE = 30


def mentions_gem(text: Any) -> bool:
    """True if text names GeM as a word, ignoring "non-GeM" phrases."""
    text = normalize_text(text)
    if not text:
        return False
    return bool(GEM_RE.search(NON_GEM_RE.sub(" ", text)))


class KeywordScorer:
    """Relevance score from keyword hits in a tender title."""

    def __init__(
        self,
        keywords: Iterable[str],
        base: int = 50,
        step: int = 10,
        cap: int = 85,
    ):
        self.keywords = [k.lower() for k in keywords if k]
        self.base = base
        self.step = step
        self.cap = cap
        self._patterns = [
            re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in self.keywords
        ]

    @classmethod
    def from_config(cls, settings: Mapping[str, Any]) -> "KeywordScorer":
        return cls(
            keywords=settings.get("keywords", []),
            base=int(settings.get("base", 50)),
            step=int(settings.get("step", 10)),
            cap=int(settings.get("cap", 85)),
        )

    def __call__(self, title: str) -> int:
        if not title:
            return self.base
        matches = sum(1 for p in self._patterns if p.search(title))
        return max(0, min(self.cap, self.base + self.step * matches, 100))


@dataclass(frozen=True)
class TenderClassification:
    source: TenderSource
    status: TenderStatus


@dataclass(frozen=True)
class ResultClassification:
    status: ResultStatus
    awarded_to: Optional[str]
    is_tracked_company_winner: bool
    is_tracked_company_participant: bool

    @property
    def company_eligible(self) -> bool:
        return self.is_tracked_company_winner or self.is_tracked_company_participant

    @property
    def ai_match_score(self) -> int:
        if self.is_tracked_company_winner:
            return WINNER_SCORE
        if self.is_tracked_company_participant:
            return PARTICIPANT_SCORE
        return MISSED_SCORE


class RowClassifier:
    """
    Classifies normalized rows.

    Args:
        company_aliases: Names the tracked company appears under in result
            sheets. Matching ignores case and company-suffix spelling.
        scorer: Callable mapping a title to a 0-100 relevance score.
    """

    def __init__(
        self,
        company_aliases: Iterable[str] = (),
        scorer: Optional[Callable[[str], int]] = None,
    ):
        self.company_aliases = [a for a in company_aliases if a]
        self.scorer = scorer or KeywordScorer([])

    def _mentions_company(self, text: Optional[str]) -> bool:
        return any(name_mentions(text, alias) for alias in self.company_aliases)

    def classify(self, row: Mapping[str, Any], sheet_name: str = "") -> TenderClassification:
        """GeM if the organization, title, sheet name or source column names it."""
        texts = (row.get("organization"), row.get("title"), sheet_name, row.get("source"))
        source = TenderSource.GEM if any(mentions_gem(t) for t in texts) else TenderSource.NON_GEM
        return TenderClassification(source=source, status=TenderStatus.ACTIVE)

    def classify_result(self, row: Mapping[str, Any]) -> ResultClassification:
        """
        Outcome of a result row for the tracked company.

        won when the company is named in ``awarded_to``, lost when it is one of
        the ``participants``, missed_opportunity otherwise.
        """
        awarded_to = normalize_text(row.get("awarded_to")) or None
        participants = normalize_list(row.get("participants"))

        winner = self._mentions_company(awarded_to)
        participant = not winner and any(self._mentions_company(p) for p in participants)

        if winner:
            status = ResultStatus.WON
        elif participant:
            status = ResultStatus.LOST
        else:
            status = ResultStatus.MISSED_OPPORTUNITY

        return ResultClassification(
            status=status,
            awarded_to=awarded_to,
            is_tracked_company_winner=winner,
            is_tracked_company_participant=participant,
        )

    def score(self, title: str) -> int:
        return int(self.scorer(title))
