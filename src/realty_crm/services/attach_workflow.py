"""Attach workflow: accepted recommendation -> canonical Property + client link.

Steps, all inside the caller's transaction:

1. Resolve the recommendation (must be ``new``) and its listing.
2. Find the Property by external listing id, or create it from the listing's
   display fields. The unique constraint on ``properties.external_id`` is what
   prevents duplicates; losing an insert race is reported as
   ``ConflictResolved`` and handled by re-reading the winner.
3. Find or create the ClientProperty link.
4. Flip the recommendation to ``attached``.

Re-running after a partial failure is safe: steps 2 and 3 reuse what exists.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from realty_crm.domain.enums import (
    ClientPropertyRelationship,
    InterestLevel,
    PropertySource,
    RecommendationStatus,
)
from realty_crm.domain.errors import AlreadyAttached, ConflictResolved, ListingMissing
from realty_crm.domain.models import Listing, Property
from realty_crm.infra.database import insert_unique
from realty_crm.services.client_property_links import ClientPropertyLinks
from realty_crm.services.listing_fields import build_address_line, primary_photo_url
from realty_crm.services.recommendation_store import RecommendationStore

logger = logging.getLogger(__name__)

# Link defaults for a property attached from a recommendation
ATTACH_RELATIONSHIP = ClientPropertyRelationship.FAVORITE.value
ATTACH_INTEREST = InterestLevel.HOT.value
ATTACH_FAVORITE = True


@dataclass(frozen=True)
class AttachResult:
    property_id: str
    client_property_id: str
    property_created: bool
    link_created: bool


async def find_property_by_external_id(db: AsyncSession, external_id: str) -> Optional[Property]:
    result = await db.execute(select(Property).where(Property.external_id == external_id))
    return result.scalar_one_or_none()


def property_from_listing(listing: Listing) -> Property:
    """Build (but do not persist) a canonical Property from a feed listing."""
    return Property(
        brokerage_id=listing.brokerage_id,
        external_id=listing.external_id,
        source=PropertySource.LISTING.value,
        address=build_address_line(listing),
        city=listing.city or "",
        state=listing.state or "",
        zip=listing.postal_code or "",
        list_price=listing.list_price,
        beds=listing.beds,
        baths=listing.baths,
        sqft=listing.sqft,
        lot_sqft=listing.lot_sqft,
        year_built=listing.year_built,
        property_type=listing.property_type,
        status=listing.status,
        primary_photo_url=primary_photo_url(listing.raw_payload),
        pipeline_stage="suggested",
    )


async def find_or_create_property(db: AsyncSession, listing: Listing) -> tuple[Property, bool]:
    """Return ``(property, created)`` for the listing's external id."""
    existing = await find_property_by_external_id(db, listing.external_id)
    if existing is not None:
        return existing, False

    prop = property_from_listing(listing)
    try:
        await insert_unique(db, prop, entity="Property", key=listing.external_id)
    except ConflictResolved as conflict:
        logger.info("[AttachWorkflow] %s; reusing existing property", conflict)
        existing = await find_property_by_external_id(db, listing.external_id)
        if existing is None:
            # No winner to reuse, so some other constraint failed
            raise conflict.__cause__
        return existing, False

    logger.info(
        "[AttachWorkflow] created property=%s for external_id=%s", prop.id, listing.external_id
    )
    return prop, True


async def attach(db: AsyncSession, recommendation_id: str) -> AttachResult:
    """Convert a ``new`` recommendation into a Property and client link."""
    store = RecommendationStore(db)
    rec = await store.get(recommendation_id)

    if rec.status != RecommendationStatus.NEW.value:
        raise AlreadyAttached(
            rec.status,
            RecommendationStatus.ATTACHED,
            f"recommendation {rec.id} is already {rec.status}",
        )

    if rec.listing_id is None:
        raise ListingMissing(rec.id)
    listing = await db.get(Listing, rec.listing_id)
    if listing is None:
        raise ListingMissing(rec.id, rec.listing_id)

    prop, property_created = await find_or_create_property(db, listing)

    link, link_created = await ClientPropertyLinks(db).link_property(
        rec.client_id,
        prop.id,
        relationship=ATTACH_RELATIONSHIP,
        interest_level=ATTACH_INTEREST,
        is_favorite=ATTACH_FAVORITE,
    )

    await store.mark_attached(rec)

    logger.info(
        "[AttachWorkflow] recommendation=%s attached: property=%s (%s) link=%s (%s)",
        rec.id,
        prop.id,
        "created" if property_created else "reused",
        link.id,
        "created" if link_created else "reused",
    )
    return AttachResult(
        property_id=prop.id,
        client_property_id=link.id,
        property_created=property_created,
        link_created=link_created,
    )
