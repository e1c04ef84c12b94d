"""Tender status lifecycle: state machine and missed-opportunity sweeps."""

from .states import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    allowed_targets,
    can_transition,
    validate_transition,
    is_terminal,
)
from .missed import (
    MissedOpportunitySweeper,
    SweepResult,
    TransitionedTender,
    sweep_missed_opportunities,
    reactivate_if_extended,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "allowed_targets",
    "can_transition",
    "validate_transition",
    "is_terminal",
    "MissedOpportunitySweeper",
    "SweepResult",
    "TransitionedTender",
    "sweep_missed_opportunities",
    "reactivate_if_extended",
]
