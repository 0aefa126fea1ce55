"""Recommendation state machine: validates lifecycle transitions.

    new --dismiss--> dismissed   (terminal)
    new --attach-->  attached    (terminal)

Leaving a terminal state is only possible through the explicit administrative
map (``dismissed -> new`` via reopen); an attached recommendation never moves.
"""

from realty_crm.domain.enums import RecommendationStatus
from realty_crm.domain.errors import InvalidStateTransition

S = RecommendationStatus

# ---------------------------------------------------------------------------
# Transition maps: from_status -> set of allowed to_status
# ---------------------------------------------------------------------------

TRANSITION_MAP: dict[RecommendationStatus, set[RecommendationStatus]] = {
    S.NEW: {S.DISMISSED, S.ATTACHED},
}

ADMIN_TRANSITION_MAP: dict[RecommendationStatus, set[RecommendationStatus]] = {
    S.DISMISSED: {S.NEW},
}

TERMINAL_STATES: set[RecommendationStatus] = {S.ATTACHED, S.DISMISSED}


def _coerce(status) -> RecommendationStatus:
    if isinstance(status, RecommendationStatus):
        return status
    return RecommendationStatus(status)


def validate_transition(current_status, target_status, *, admin: bool = False) -> bool:
    """Return True if the transition is valid. Raise InvalidStateTransition if not."""
    current = _coerce(current_status)
    target = _coerce(target_status)

    transition_map = ADMIN_TRANSITION_MAP if admin else TRANSITION_MAP
    allowed = transition_map.get(current)
    if not allowed:
        if current in TERMINAL_STATES and not admin:
            reason = f"{current.value} is terminal"
        else:
            reason = f"No transitions allowed from {current.value}"
        raise InvalidStateTransition(current, target, reason)

    if target not in allowed:
        raise InvalidStateTransition(
            current,
            target,
            f"Transition from {current.value} to {target.value} is not allowed",
        )
    return True


def get_allowed_transitions(current_status, *, admin: bool = False) -> list[RecommendationStatus]:
    """Return valid next states from ``current_status``, in enum order."""
    current = _coerce(current_status)
    transition_map = ADMIN_TRANSITION_MAP if admin else TRANSITION_MAP
    allowed = transition_map.get(current, set())
    return [s for s in RecommendationStatus if s in allowed]
