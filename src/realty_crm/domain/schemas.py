"""Pydantic v2 schemas for API request/response validation."""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Body returned for domain errors."""

    error: str
    detail: str
    field: Optional[str] = None
    retryable: bool = False


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


class CandidateResponse(BaseModel):
    """One ranked listing from a generation run."""

    listing_id: str
    external_id: Optional[str] = None
    score: int
    reasons: list[str]
    listed_at: Optional[datetime] = None


class GenerationResponse(BaseModel):
    """Result of matching a client against the current listing pool."""

    client_id: str
    candidates: list[CandidateResponse]
    inserted: int
    refreshed: int
    skipped_resolved: int
    deferred: int
    stale_ids: list[str]


class ListingSummary(BaseModel):
    """Display slice of a listing shown next to a recommendation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    external_id: str
    status: str
    list_price: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    beds: Optional[float] = None
    baths: Optional[float] = None
    sqft: Optional[int] = None
    property_type: Optional[str] = None
    address: Optional[str] = None
    primary_photo_url: Optional[str] = None


class RecommendationResponse(BaseModel):
    """Recommendation row with its listing, if the listing still exists."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    listing_id: Optional[str] = None
    score: int
    reasons: list[str] = Field(default_factory=list)
    status: str
    created_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    listing: Optional[ListingSummary] = None


class AttachResponse(BaseModel):
    property_id: str
    client_property_id: str
    property_created: bool
    link_created: bool


# ---------------------------------------------------------------------------
# Client / property links
# ---------------------------------------------------------------------------


class ClientPropertyResponse(BaseModel):
    """A client's link to a canonical property."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    property_id: str
    relationship: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("relationship_tag", "relationship")
    )
    interest_level: Optional[str] = None
    is_favorite: bool = False
    client_feedback: Optional[str] = None
    client_rating: Optional[int] = None
    status: str
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ManualLinkRequest(BaseModel):
    """Attach an existing property to a client by hand."""

    property_id: str
    relationship: Optional[str] = "favorite"
    interest_level: Optional[str] = None
    is_favorite: bool = False


class FeedbackUpdate(BaseModel):
    """Partial update of the client-entered fields on a link.

    Range checks live in the link manager so the API and library callers
    share one set of rules.
    """

    client_feedback: Optional[str] = None
    client_rating: Optional[int] = None
    interest_level: Optional[str] = None
    is_favorite: Optional[bool] = None
    relationship: Optional[str] = None
