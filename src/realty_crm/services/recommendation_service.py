"""Operations exposed to the UI layer.

Each function is one request-scoped unit of work: it runs the component
services against the given session, commits once on success, and rolls back
on any error. Data store connectivity failures are re-raised as
``UpstreamUnavailable`` so callers can offer a retry; nothing is partially
committed.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from realty_crm.app.config import get_settings
from realty_crm.domain.criteria import Criteria
from realty_crm.domain.enums import RecommendationStatus
from realty_crm.domain.errors import NotFound, UpstreamUnavailable, ValidationError
from realty_crm.domain.models import Client, ClientProperty, Listing, PropertyRecommendation
from realty_crm.services.attach_workflow import AttachResult, attach
from realty_crm.services.client_property_links import ClientPropertyLinks
from realty_crm.services.recommendation_store import RecommendationStore, UpsertResult
from realty_crm.services.requirement_matcher import RankedCandidate, match

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    client_id: str
    candidates: list[RankedCandidate] = field(default_factory=list)
    upsert: UpsertResult = field(default_factory=UpsertResult)


def _is_connectivity_error(exc: DBAPIError) -> bool:
    return isinstance(exc, (OperationalError, InterfaceError)) or bool(
        getattr(exc, "connection_invalidated", False)
    )


async def _rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as e:
        # The connection is usually already gone; the original error is what matters
        logger.warning("[RecommendationService] rollback failed: %s", e)


@asynccontextmanager
async def unit_of_work(db: AsyncSession, *, commit: bool = True):
    """Commit on success, roll back on failure, translate outages."""
    try:
        yield
        if commit:
            await db.commit()
    except DBAPIError as exc:
        await _rollback(db)
        if _is_connectivity_error(exc):
            logger.warning("[RecommendationService] data store unavailable: %s", exc)
            raise UpstreamUnavailable("The data store could not be reached. Please retry.") from exc
        raise
    except Exception:
        await _rollback(db)
        raise


async def _load_client(db: AsyncSession, client_id: str) -> Client:
    client = await db.get(Client, client_id)
    if client is None:
        raise NotFound("Client", client_id)
    return client


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


async def generate_recommendations(
    db: AsyncSession,
    client_id: str,
    *,
    include_closed: Optional[bool] = None,
    max_new: Optional[int] = None,
) -> GenerationResult:
    """Match the client's criteria against the brokerage's listings and record results."""
    settings = get_settings()
    if include_closed is None:
        include_closed = settings.match_include_closed_inventory
    if max_new is None:
        max_new = settings.recommendation_max_new

    async with unit_of_work(db):
        client = await _load_client(db, client_id)
        criteria = Criteria.from_client(client)
        if not client.brokerage_id:
            raise ValidationError("brokerage_id", "client is not linked to a brokerage yet")

        listings = (
            await db.execute(select(Listing).where(Listing.brokerage_id == client.brokerage_id))
        ).scalars().all()

        candidates = match(criteria, listings, include_closed=include_closed)
        upsert = await RecommendationStore(db).upsert(client.id, candidates, max_new=max_new)

    logger.info(
        "[RecommendationService] client=%s scored=%d candidates=%d",
        client_id, len(listings), len(candidates),
    )
    return GenerationResult(client_id=client_id, candidates=candidates, upsert=upsert)


async def list_recommendations(
    db: AsyncSession,
    client_id: str,
    statuses: Optional[Iterable[RecommendationStatus]] = None,
) -> list[PropertyRecommendation]:
    async with unit_of_work(db, commit=False):
        await _load_client(db, client_id)
        return await RecommendationStore(db).list_for_client(client_id, statuses)


async def set_recommendation_status(
    db: AsyncSession,
    recommendation_id: str,
    status,
) -> PropertyRecommendation:
    """Operator decision on a recommendation. Only ``dismissed`` is settable here."""
    try:
        target = RecommendationStatus(status)
    except ValueError:
        raise ValidationError("status", f"unknown recommendation status {status!r}") from None
    if target != RecommendationStatus.DISMISSED:
        raise ValidationError(
            "status",
            "only 'dismissed' can be set directly; use attach to attach a recommendation",
        )

    async with unit_of_work(db):
        rec = await RecommendationStore(db).dismiss(recommendation_id)
    return rec


async def reopen_recommendation(db: AsyncSession, recommendation_id: str) -> PropertyRecommendation:
    """Administrative undo of a dismissal."""
    async with unit_of_work(db):
        rec = await RecommendationStore(db).reopen(recommendation_id)
    return rec


async def attach_recommendation(db: AsyncSession, recommendation_id: str) -> AttachResult:
    async with unit_of_work(db):
        result = await attach(db, recommendation_id)
    return result


# ---------------------------------------------------------------------------
# Client / property links
# ---------------------------------------------------------------------------


async def archive_link(db: AsyncSession, link_id: str) -> ClientProperty:
    async with unit_of_work(db):
        link = await ClientPropertyLinks(db).archive(link_id)
    return link


async def restore_link(db: AsyncSession, link_id: str) -> ClientProperty:
    async with unit_of_work(db):
        link = await ClientPropertyLinks(db).restore(link_id)
    return link


async def list_client_links(
    db: AsyncSession,
    client_id: str,
    *,
    include_archived: bool = False,
) -> list[ClientProperty]:
    async with unit_of_work(db, commit=False):
        await _load_client(db, client_id)
        return await ClientPropertyLinks(db).list_for_client(
            client_id, include_archived=include_archived
        )


async def link_property(db: AsyncSession, client_id: str, property_id: str, **defaults):
    """Manual attach of an existing property to a client."""
    async with unit_of_work(db):
        link, created = await ClientPropertyLinks(db).link_property(
            client_id, property_id, **defaults
        )
    return link, created


async def update_link_feedback(db: AsyncSession, link_id: str, **changes) -> ClientProperty:
    async with unit_of_work(db):
        link = await ClientPropertyLinks(db).update_feedback(link_id, **changes)
    return link
