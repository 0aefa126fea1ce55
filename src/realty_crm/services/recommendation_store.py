"""Persistent recommendation rows, one per (client, listing).

Regeneration is additive: unresolved (``new``) rows get their score and
reasons refreshed, resolved rows (``attached`` / ``dismissed``) are never
written by ``upsert``. Rows the matcher no longer produces are kept and
reported as stale rather than deleted.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from realty_crm.domain.enums import RecommendationStatus
from realty_crm.domain.errors import NotFound
from realty_crm.domain.models import PropertyRecommendation
from realty_crm.infra.database import utcnow
from realty_crm.services.recommendation_state_machine import validate_transition
from realty_crm.services.requirement_matcher import RankedCandidate

logger = logging.getLogger(__name__)

S = RecommendationStatus

DEFAULT_LIST_STATUSES = (S.NEW, S.ATTACHED)


@dataclass
class UpsertResult:
    """What a single regeneration pass did to a client's recommendations."""

    inserted: int = 0
    refreshed: int = 0
    skipped_resolved: int = 0
    deferred: int = 0  # candidates held back by max_new
    stale_ids: list[str] = field(default_factory=list)


class RecommendationStore:
    """Owns PropertyRecommendation rows and their new/attached/dismissed lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, recommendation_id: str) -> PropertyRecommendation:
        rec = await self.db.get(PropertyRecommendation, recommendation_id)
        if rec is None:
            raise NotFound("Recommendation", recommendation_id)
        return rec

    async def upsert(
        self,
        client_id: str,
        candidates: Sequence[RankedCandidate],
        *,
        max_new: Optional[int] = None,
    ) -> UpsertResult:
        """Record ranked candidates for a client without touching resolved rows.

        ``candidates`` are expected in rank order; when ``max_new`` is set only
        the best ``max_new`` unseen listings are inserted this pass.
        """
        result = UpsertResult()
        now = utcnow()

        rows = (
            await self.db.execute(
                select(PropertyRecommendation).where(
                    PropertyRecommendation.client_id == client_id
                )
            )
        ).scalars().all()
        by_listing = {row.listing_id: row for row in rows if row.listing_id is not None}

        produced: set[str] = set()
        for candidate in candidates:
            if candidate.listing_id in produced:
                continue
            produced.add(candidate.listing_id)

            row = by_listing.get(candidate.listing_id)
            if row is None:
                if max_new is not None and result.inserted >= max_new:
                    result.deferred += 1
                    continue
                row = PropertyRecommendation(
                    client_id=client_id,
                    listing_id=candidate.listing_id,
                    score=candidate.score,
                    reasons=list(candidate.reasons),
                    status=S.NEW.value,
                    last_seen_at=now,
                )
                self.db.add(row)
                by_listing[candidate.listing_id] = row
                result.inserted += 1
            elif row.status == S.NEW.value:
                row.score = candidate.score
                row.reasons = list(candidate.reasons)
                row.last_seen_at = now
                result.refreshed += 1
            else:
                result.skipped_resolved += 1

        result.stale_ids = [
            row.id
            for row in rows
            if row.status == S.NEW.value and row.listing_id not in produced
        ]

        await self.db.flush()
        logger.info(
            "[RecommendationStore] client=%s inserted=%d refreshed=%d resolved_skipped=%d "
            "deferred=%d stale=%d",
            client_id,
            result.inserted,
            result.refreshed,
            result.skipped_resolved,
            result.deferred,
            len(result.stale_ids),
        )
        return result

    async def _transition(
        self,
        rec: PropertyRecommendation,
        target: RecommendationStatus,
        *,
        admin: bool = False,
    ) -> PropertyRecommendation:
        validate_transition(rec.status, target, admin=admin)
        rec.status = target.value
        rec.resolved_at = None if target == S.NEW else utcnow()
        await self.db.flush()
        logger.info("[RecommendationStore] recommendation=%s -> %s", rec.id, target.value)
        return rec

    async def dismiss(self, recommendation_id: str) -> PropertyRecommendation:
        """new -> dismissed."""
        rec = await self.get(recommendation_id)
        return await self._transition(rec, S.DISMISSED)

    async def mark_attached(self, rec: PropertyRecommendation) -> PropertyRecommendation:
        """new -> attached. Called by the attach workflow once the link exists."""
        return await self._transition(rec, S.ATTACHED)

    async def reopen(self, recommendation_id: str) -> PropertyRecommendation:
        """Administrative reversal: dismissed -> new."""
        rec = await self.get(recommendation_id)
        return await self._transition(rec, S.NEW, admin=True)

    async def list_for_client(
        self,
        client_id: str,
        statuses: Optional[Iterable[RecommendationStatus]] = None,
    ) -> list[PropertyRecommendation]:
        """Recommendations for a client (listing eager-loaded), unresolved first, then best score."""
        wanted = [S(s).value for s in (statuses or DEFAULT_LIST_STATUSES)]
        new_first = case((PropertyRecommendation.status == S.NEW.value, 0), else_=1)
        result = await self.db.execute(
            select(PropertyRecommendation)
            .options(selectinload(PropertyRecommendation.listing))
            .where(
                PropertyRecommendation.client_id == client_id,
                PropertyRecommendation.status.in_(wanted),
            )
            .order_by(
                new_first,
                PropertyRecommendation.score.desc(),
                PropertyRecommendation.created_at.desc(),
            )
        )
        return list(result.scalars().all())
