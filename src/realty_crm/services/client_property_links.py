"""Client/property links: manual linking, feedback, and reversible archiving.

Archiving only hides a link from default listings. Feedback, rating,
favorite flag and relationship survive any number of archive/restore cycles.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from realty_crm.domain.enums import (
    ClientPropertyRelationship,
    ClientPropertyStatus,
    InterestLevel,
)
from realty_crm.domain.errors import ConflictResolved, NotFound, ValidationError
from realty_crm.domain.models import Client, ClientProperty, Property
from realty_crm.infra.database import insert_unique, utcnow

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

_UNSET = object()


def validate_rating(rating) -> Optional[int]:
    """Ratings are whole stars 1-5, or absent."""
    if rating is None:
        return None
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("client_rating", f"must be an integer {MIN_RATING}-{MAX_RATING}")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            "client_rating", f"must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
        )
    return rating


def _enum_value(enum_cls, value, field_name: str) -> Optional[str]:
    if value is None:
        return None
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(field_name, f"must be one of {allowed}, got {value!r}") from None


class ClientPropertyLinks:
    """Link manager for ClientProperty rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, link_id: str) -> ClientProperty:
        link = await self.db.get(ClientProperty, link_id)
        if link is None:
            raise NotFound("ClientProperty", link_id)
        return link

    async def find(self, client_id: str, property_id: str) -> Optional[ClientProperty]:
        result = await self.db.execute(
            select(ClientProperty).where(
                ClientProperty.client_id == client_id,
                ClientProperty.property_id == property_id,
            )
        )
        return result.scalar_one_or_none()

    async def link_property(
        self,
        client_id: str,
        property_id: str,
        *,
        relationship: Optional[str] = ClientPropertyRelationship.FAVORITE.value,
        interest_level: Optional[str] = InterestLevel.HOT.value,
        is_favorite: bool = True,
    ) -> tuple[ClientProperty, bool]:
        """Find or create the link for (client, property).

        Returns ``(link, created)``. An existing link is reused unchanged,
        archived or not.
        """
        existing = await self.find(client_id, property_id)
        if existing is not None:
            return existing, False

        if await self.db.get(Client, client_id) is None:
            raise NotFound("Client", client_id)
        if await self.db.get(Property, property_id) is None:
            raise NotFound("Property", property_id)

        link = ClientProperty(
            client_id=client_id,
            property_id=property_id,
            relationship_tag=_enum_value(ClientPropertyRelationship, relationship, "relationship"),
            interest_level=_enum_value(InterestLevel, interest_level, "interest_level"),
            is_favorite=bool(is_favorite),
            status=ClientPropertyStatus.ACTIVE.value,
        )
        try:
            await insert_unique(
                self.db, link, entity="ClientProperty", key=f"{client_id}:{property_id}"
            )
        except ConflictResolved as conflict:
            logger.info("[ClientPropertyLinks] %s; reusing existing link", conflict)
            existing = await self.find(client_id, property_id)
            if existing is None:
                # No winner to reuse, so some other constraint failed
                raise conflict.__cause__
            return existing, False

        logger.info(
            "[ClientPropertyLinks] linked client=%s property=%s link=%s",
            client_id, property_id, link.id,
        )
        return link, True

    async def archive(self, link_id: str) -> ClientProperty:
        """Hide a link. No-op when already archived."""
        link = await self.get(link_id)
        if link.status == ClientPropertyStatus.ARCHIVED.value:
            return link
        link.status = ClientPropertyStatus.ARCHIVED.value
        link.archived_at = utcnow()
        await self.db.flush()
        logger.info("[ClientPropertyLinks] archived link=%s", link_id)
        return link

    async def restore(self, link_id: str) -> ClientProperty:
        """Un-hide a link. No-op when already active."""
        link = await self.get(link_id)
        if link.status == ClientPropertyStatus.ACTIVE.value and link.archived_at is None:
            return link
        link.status = ClientPropertyStatus.ACTIVE.value
        link.archived_at = None
        await self.db.flush()
        logger.info("[ClientPropertyLinks] restored link=%s", link_id)
        return link

    async def update_feedback(
        self,
        link_id: str,
        *,
        client_feedback=_UNSET,
        client_rating=_UNSET,
        interest_level=_UNSET,
        is_favorite=_UNSET,
        relationship=_UNSET,
    ) -> ClientProperty:
        """Patch the client-entered fields. Omitted arguments are left alone."""
        link = await self.get(link_id)
        if client_rating is not _UNSET:
            link.client_rating = validate_rating(client_rating)
        if client_feedback is not _UNSET:
            link.client_feedback = client_feedback
        if interest_level is not _UNSET:
            link.interest_level = _enum_value(InterestLevel, interest_level, "interest_level")
        if relationship is not _UNSET:
            link.relationship_tag = _enum_value(
                ClientPropertyRelationship, relationship, "relationship"
            )
        if is_favorite is not _UNSET:
            link.is_favorite = bool(is_favorite)
        await self.db.flush()
        return link

    async def list_for_client(
        self,
        client_id: str,
        *,
        include_archived: bool = False,
    ) -> list[ClientProperty]:
        """Links for a client, newest first. Archived links only on request."""
        query = select(ClientProperty).where(ClientProperty.client_id == client_id)
        if not include_archived:
            query = query.where(ClientProperty.status != ClientPropertyStatus.ARCHIVED.value)
        query = query.order_by(ClientProperty.created_at.desc(), ClientProperty.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())
