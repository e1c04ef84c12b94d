"""Tender status state machine."""

from tendertrack.database.models import TenderStatus
from tendertrack.exceptions import InvalidTransitionError


ALLOWED_TRANSITIONS: dict[TenderStatus, frozenset[TenderStatus]] = {
    TenderStatus.DRAFT: frozenset({TenderStatus.ACTIVE, TenderStatus.NOT_RELEVANT}),
    TenderStatus.ACTIVE: frozenset({
        TenderStatus.ASSIGNED,
        TenderStatus.MISSED_OPPORTUNITY,
        TenderStatus.NOT_RELEVANT,
    }),
    TenderStatus.ASSIGNED: frozenset({TenderStatus.SUBMITTED, TenderStatus.ACTIVE}),
    TenderStatus.SUBMITTED: frozenset({TenderStatus.WON, TenderStatus.LOST}),
    TenderStatus.MISSED_OPPORTUNITY: frozenset({TenderStatus.ACTIVE}),
    TenderStatus.WON: frozenset(),
    TenderStatus.LOST: frozenset(),
    TenderStatus.NOT_RELEVANT: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def allowed_targets(status: TenderStatus) -> frozenset[TenderStatus]:
    return ALLOWED_TRANSITIONS.get(TenderStatus(status), frozenset())


def can_transition(old_status: TenderStatus, new_status: TenderStatus) -> bool:
    return TenderStatus(new_status) in allowed_targets(old_status)


def validate_transition(old_status: TenderStatus, new_status: TenderStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If the move is not an allowed transition.
    """
    if not can_transition(old_status, new_status):
        raise InvalidTransitionError(old_status, new_status)


def is_terminal(status: TenderStatus) -> bool:
    return TenderStatus(status) in TERMINAL_STATES
