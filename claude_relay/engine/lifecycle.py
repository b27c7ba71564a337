"""Session lifecycle state machine.

Defines valid transitions and enforces them. Invalid transitions
raise ValueError rather than silently proceeding.

State Diagram:

    PENDING ──> ACTIVE ──┬──> COMPLETED
       │                 │
       │                 ├──> ABORTED
       │                 │
       │                 └──> ERRORED
       │
       └──> ABORTED | ERRORED  (killed or failed before streaming)

Terminal states have no outgoing transitions.
"""
from __future__ import annotations

from .models import SessionStatus

VALID_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.PENDING: {
        SessionStatus.ACTIVE,
        SessionStatus.ABORTED,
        SessionStatus.ERRORED,
    },
    SessionStatus.ACTIVE: {
        SessionStatus.COMPLETED,
        SessionStatus.ABORTED,
        SessionStatus.ERRORED,
    },
    SessionStatus.COMPLETED: set(),
    SessionStatus.ABORTED: set(),
    SessionStatus.ERRORED: set(),
}

TERMINAL_STATES = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.ABORTED,
    SessionStatus.ERRORED,
})


def validate_transition(current: SessionStatus, target: SessionStatus) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(s.value for s in allowed) or "none (terminal)"
        raise ValueError(
            f"Invalid state transition: {current.value} -> {target.value}. "
            f"Allowed from {current.value}: {allowed_str}"
        )
