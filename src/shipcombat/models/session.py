"""Session state machine — phases of a combat session.

IDLE starts live combat or loads a drill; drills and combat can be
rewound through RESETTING when a snapshot exists.
"""

from __future__ import annotations

from enum import Enum


class SessionState(Enum):
    """Phases of a combat session."""

    IDLE = "IDLE"
    DRILL_LOADING = "DRILL_LOADING"
    DRILL_ACTIVE = "DRILL_ACTIVE"
    COMBAT = "COMBAT"
    RESETTING = "RESETTING"


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.COMBAT, SessionState.DRILL_LOADING}),
    SessionState.DRILL_LOADING: frozenset({SessionState.DRILL_ACTIVE, SessionState.IDLE}),
    SessionState.DRILL_ACTIVE: frozenset({SessionState.COMBAT, SessionState.RESETTING}),
    SessionState.COMBAT: frozenset({SessionState.IDLE, SessionState.DRILL_ACTIVE, SessionState.RESETTING}),
    SessionState.RESETTING: frozenset({SessionState.DRILL_ACTIVE, SessionState.IDLE}),
}
"""Legal transitions from each state."""

ACTIVE_STATES: frozenset[SessionState] = frozenset({SessionState.COMBAT, SessionState.DRILL_ACTIVE})
"""States in which damage may be applied and snapshots taken."""


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    return to_state in TRANSITIONS.get(from_state, frozenset())
