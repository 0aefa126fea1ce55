"""Recommendation API endpoints.

Generate scored recommendations for a client, review them, and resolve each
one by dismissing or attaching it. Auth and role checks happen upstream.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from realty_crm.domain.enums import RecommendationStatus
from realty_crm.domain.models import Listing, PropertyRecommendation
from realty_crm.domain.schemas import (
    AttachResponse,
    CandidateResponse,
    GenerationResponse,
    ListingSummary,
    RecommendationResponse,
)
from realty_crm.infra.database import get_db
from realty_crm.services import recommendation_service
from realty_crm.services.listing_fields import build_address_line, primary_photo_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])
client_router = APIRouter(prefix="/api/clients", tags=["recommendations"])


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def serialize_listing(listing: Listing) -> ListingSummary:
    return ListingSummary(
        id=listing.id,
        external_id=listing.external_id,
        status=listing.status,
        list_price=listing.list_price,
        city=listing.city,
        state=listing.state,
        postal_code=listing.postal_code,
        beds=listing.beds,
        baths=listing.baths,
        sqft=listing.sqft,
        property_type=listing.property_type,
        address=build_address_line(listing),
        primary_photo_url=primary_photo_url(listing.raw_payload),
    )


def serialize_recommendation(
    rec: PropertyRecommendation,
    listing: Optional[Listing] = None,
) -> RecommendationResponse:
    return RecommendationResponse(
        id=rec.id,
        client_id=rec.client_id,
        listing_id=rec.listing_id,
        score=rec.score,
        reasons=[str(r) for r in (rec.reasons or [])],
        status=rec.status,
        created_at=rec.created_at,
        last_seen_at=rec.last_seen_at,
        resolved_at=rec.resolved_at,
        listing=serialize_listing(listing) if listing is not None else None,
    )


# ---------------------------------------------------------------------------
# Per-client endpoints
# ---------------------------------------------------------------------------


@client_router.post("/{client_id}/recommendations/generate", response_model=GenerationResponse)
async def generate_recommendations(client_id: str, db: AsyncSession = Depends(get_db)):
    """Run the matcher for a client and record new candidates."""
    result = await recommendation_service.generate_recommendations(db, client_id)
    return GenerationResponse(
        client_id=result.client_id,
        candidates=[
            CandidateResponse(
                listing_id=c.listing_id,
                external_id=c.external_id,
                score=c.score,
                reasons=list(c.reasons),
                listed_at=c.listed_at,
            )
            for c in result.candidates
        ],
        inserted=result.upsert.inserted,
        refreshed=result.upsert.refreshed,
        skipped_resolved=result.upsert.skipped_resolved,
        deferred=result.upsert.deferred,
        stale_ids=result.upsert.stale_ids,
    )


@client_router.get("/{client_id}/recommendations", response_model=list[RecommendationResponse])
async def list_recommendations(
    client_id: str,
    status: Optional[list[RecommendationStatus]] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    """New recommendations first, then attached (or whatever ``status`` asks for)."""
    recs = await recommendation_service.list_recommendations(db, client_id, status)
    return [serialize_recommendation(rec, rec.listing) for rec in recs]


# ---------------------------------------------------------------------------
# Per-recommendation actions
# ---------------------------------------------------------------------------


@router.post("/{recommendation_id}/dismiss", response_model=RecommendationResponse)
async def dismiss_recommendation(recommendation_id: str, db: AsyncSession = Depends(get_db)):
    rec = await recommendation_service.set_recommendation_status(
        db, recommendation_id, RecommendationStatus.DISMISSED
    )
    return serialize_recommendation(rec)


@router.post("/{recommendation_id}/reopen", response_model=RecommendationResponse)
async def reopen_recommendation(recommendation_id: str, db: AsyncSession = Depends(get_db)):
    """Admin-only undo of a dismissal (role check is enforced upstream)."""
    rec = await recommendation_service.reopen_recommendation(db, recommendation_id)
    return serialize_recommendation(rec)


@router.post("/{recommendation_id}/attach", response_model=AttachResponse)
async def attach_recommendation(recommendation_id: str, db: AsyncSession = Depends(get_db)):
    result = await recommendation_service.attach_recommendation(db, recommendation_id)
    return AttachResponse(
        property_id=result.property_id,
        client_property_id=result.client_property_id,
        property_created=result.property_created,
        link_created=result.link_created,
    )
