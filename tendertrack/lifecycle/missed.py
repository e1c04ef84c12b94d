"""
Missed-opportunity handling.

The sweeper moves active, unassigned tenders whose deadline has passed to
missed_opportunity. Re-uploading such a tender with a later deadline brings
it back to active (see reactivate_if_extended).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tqdm import tqdm

from tendertrack.database import Tender, TenderStatus, TenderStore
from tendertrack.exceptions import InvalidTransitionError, RecordNotFoundError
from .states import is_terminal

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class TransitionedTender:
    id: int
    title: str
    organization: str
    deadline: datetime


@dataclass
class SweepResult:
    processed_count: int = 0
    transitioned: list[TransitionedTender] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "processed_count": self.processed_count,
            "transitioned": [
                {
                    "id": t.id,
                    "title": t.title,
                    "organization": t.organization,
                    "deadline": t.deadline.isoformat(),
                }
                for t in self.transitioned
            ],
        }


class MissedOpportunitySweeper:
    """Marks expired, unassigned active tenders as missed opportunities."""

    def __init__(self, store: Optional[TenderStore] = None):
        self.store = store or TenderStore()

    def sweep(self, now: Optional[datetime] = None, show_progress: bool = False) -> SweepResult:
        """
        Run one sweep.

        Running it again immediately transitions nothing: swept tenders are no
        longer active.

        Args:
            now: Reference time (default: current time).
            show_progress: Show a progress bar on the terminal.
        """
        now = now or datetime.now()
        result = SweepResult()

        expired = self.store.find_expired_unassigned(now)
        logger.info("Found %d expired unassigned tender(s)", len(expired))

        for tender in tqdm(expired, desc="Marking missed opportunities", disable=not show_progress):
            metadata = {
                "action": "missed_opportunity",
                "reason": "deadline_expired",
                "deadline": tender.deadline.isoformat(),
                "source": "automated_check",
            }
            try:
                self.store.update_status(
                    tender.id, TenderStatus.MISSED_OPPORTUNITY, metadata, actor=SYSTEM_ACTOR
                )
            except (InvalidTransitionError, RecordNotFoundError) as e:
                # Changed by someone else since the query
                logger.warning("Tender %s not swept: %s", tender.id, e)
                continue

            result.transitioned.append(TransitionedTender(
                id=tender.id,
                title=tender.title,
                organization=tender.organization,
                deadline=tender.deadline,
            ))

        result.processed_count = len(result.transitioned)
        if result.processed_count:
            logger.info("Marked %d tender(s) as missed opportunities", result.processed_count)
        return result


def sweep_missed_opportunities(
    store: Optional[TenderStore] = None,
    now: Optional[datetime] = None,
) -> SweepResult:
    """Parameterless sweep trigger for schedulers and hooks."""
    return MissedOpportunitySweeper(store).sweep(now=now)


def reactivate_if_extended(
    store: TenderStore,
    tender: Tender,
    new_deadline: datetime,
    context: Optional[dict] = None,
    actor: Optional[str] = None,
) -> Optional[str]:
    """
    Apply a re-uploaded deadline to an existing tender.

    Nothing happens unless ``new_deadline`` is later than the stored one and
    the tender is still open. A missed opportunity goes back to active.

    Returns:
        "reactivated", "deadline_extended", or None when nothing changed.
    """
    if is_terminal(tender.status):
        return None
    if tender.deadline is not None and new_deadline <= tender.deadline:
        return None

    if tender.status != TenderStatus.MISSED_OPPORTUNITY:
        store.update_deadline(tender.id, new_deadline, metadata=dict(context or {}), actor=actor)
        logger.info("Tender %s deadline extended to %s", tender.id, new_deadline.isoformat())
        return "deadline_extended"

    store.reactivate(tender.id, new_deadline, metadata=context, actor=actor)
    logger.info("Tender %s reactivated with deadline %s", tender.id, new_deadline.isoformat())
    return "reactivated"
