"""Error taxonomy for the matching subsystem.

Services raise these; the API layer maps them onto HTTP responses.
``ConflictResolved`` never leaves the service layer.
"""

from typing import Optional


class MatchingError(Exception):
    """Base class for every error raised by the matching subsystem."""


class ValidationError(MatchingError):
    """Malformed or out-of-range input (criteria fields, ratings, statuses)."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFound(MatchingError):
    """An id that does not resolve to a row."""

    def __init__(self, entity: str, entity_id: Optional[str]):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} no longer exists")
        else:
            super().__init__(f"{entity} {entity_id} no longer exists")


class ListingMissing(NotFound):
    """The recommendation's listing reference is absent or its row is gone."""

    def __init__(self, recommendation_id: str, listing_id: Optional[str] = None):
        self.recommendation_id = recommendation_id
        super().__init__("Listing", listing_id)


class InvalidStateTransition(MatchingError):
    """A lifecycle transition that the state machine does not allow."""

    def __init__(self, current_status, target_status, reason: str):
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        super().__init__(
            f"Invalid transition from {_value(current_status)} to {_value(target_status)}: {reason}"
        )


class AlreadyAttached(InvalidStateTransition):
    """Attach attempted on a recommendation that is no longer ``new``."""


class ConflictResolved(MatchingError):
    """A unique-key race that was lost; the caller reuses the winning row."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} with key {key} was created concurrently")


class UpstreamUnavailable(MatchingError):
    """The backing data store could not be reached. Safe to retry."""


def _value(status) -> str:
    return getattr(status, "value", str(status))
