"""Tests for the request-scoped service operations.

Covers generation end to end against the DB, the dismiss-only status setter,
and the unit-of-work guarantees: commit on success, full rollback on failure,
connectivity errors surfaced as UpstreamUnavailable.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from realty_crm.domain.errors import NotFound, UpstreamUnavailable, ValidationError
from realty_crm.domain.models import ClientProperty, Property, PropertyRecommendation
from realty_crm.services import recommendation_service
from realty_crm.services.client_property_links import ClientPropertyLinks
from realty_crm.services.recommendation_store import RecommendationStore


def _db_down():
    return OperationalError("SELECT 1", {}, Exception("unable to open database file"))


async def _count(db_session, model):
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGenerateRecommendations:
    async def test_matches_brokerage_pool(self, db_session, make_client, make_listing):
        client = await make_client(
            budget_min=800_000, budget_max=1_200_000, preferred_locations="Irvine"
        )
        hit = await make_listing(external_id="MLS123", list_price=950_000)
        await make_listing(list_price=1_500_000)
        await make_listing(brokerage_id="other-brokerage")

        result = await recommendation_service.generate_recommendations(db_session, client.id)

        assert [c.listing_id for c in result.candidates] == [hit.id]
        assert result.candidates[0].score == 65
        assert result.upsert.inserted == 1

    async def test_rerun_refreshes_instead_of_duplicating(
        self, db_session, make_client, make_listing
    ):
        client = await make_client(preferred_locations="Irvine")
        await make_listing()
        await make_listing()

        first = await recommendation_service.generate_recommendations(db_session, client.id)
        second = await recommendation_service.generate_recommendations(db_session, client.id)

        assert first.upsert.inserted == 2
        assert second.upsert.inserted == 0
        assert second.upsert.refreshed == 2
        assert await _count(db_session, PropertyRecommendation) == 2

    async def test_dismissed_stays_dismissed(self, db_session, make_client, make_listing):
        client = await make_client()
        await make_listing()
        await recommendation_service.generate_recommendations(db_session, client.id)
        (rec,) = await recommendation_service.list_recommendations(db_session, client.id)
        await recommendation_service.set_recommendation_status(db_session, rec.id, "dismissed")

        result = await recommendation_service.generate_recommendations(db_session, client.id)

        assert result.upsert.skipped_resolved == 1
        assert await recommendation_service.list_recommendations(db_session, client.id) == []

    async def test_closed_inventory(self, db_session, make_client, make_listing):
        client = await make_client()
        await make_listing(status="sold", is_active=False)

        default = await recommendation_service.generate_recommendations(db_session, client.id)
        closed = await recommendation_service.generate_recommendations(
            db_session, client.id, include_closed=True
        )

        assert default.candidates == []
        assert len(closed.candidates) == 1

    async def test_max_new(self, db_session, make_client, make_listing):
        client = await make_client()
        for _ in range(3):
            await make_listing()

        result = await recommendation_service.generate_recommendations(
            db_session, client.id, max_new=1
        )

        assert result.upsert.inserted == 1
        assert result.upsert.deferred == 2

    async def test_client_without_brokerage(self, db_session, make_client):
        client = await make_client(brokerage_id=None)
        with pytest.raises(ValidationError) as exc_info:
            await recommendation_service.generate_recommendations(db_session, client.id)
        assert exc_info.value.field == "brokerage_id"

    async def test_unknown_client(self, db_session):
        with pytest.raises(NotFound):
            await recommendation_service.generate_recommendations(db_session, "ghost")

    async def test_invalid_stored_criteria(self, db_session, make_client):
        client = await make_client(budget_min=900_000, budget_max=100_000)
        with pytest.raises(ValidationError):
            await recommendation_service.generate_recommendations(db_session, client.id)


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------


class TestSetRecommendationStatus:
    async def test_dismiss(self, db_session, make_client, make_listing, make_recommendation):
        rec = await make_recommendation(await make_client(), await make_listing())

        updated = await recommendation_service.set_recommendation_status(
            db_session, rec.id, "dismissed"
        )

        assert updated.status == "dismissed"

    @pytest.mark.parametrize("status", ["attached", "new"])
    async def test_only_dismiss_is_settable(
        self, db_session, make_client, make_listing, make_recommendation, status
    ):
        rec = await make_recommendation(await make_client(), await make_listing())
        with pytest.raises(ValidationError):
            await recommendation_service.set_recommendation_status(db_session, rec.id, status)

    async def test_unknown_status(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await recommendation_service.set_recommendation_status(db_session, "x", "archived")
        assert exc_info.value.field == "status"

    async def test_reopen(self, db_session, make_client, make_listing, make_recommendation):
        rec = await make_recommendation(await make_client(), await make_listing(), "dismissed")

        reopened = await recommendation_service.reopen_recommendation(db_session, rec.id)

        assert reopened.status == "new"


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


class TestUnitOfWork:
    async def test_attach_commits_everything(
        self, db_session, make_client, make_listing, make_recommendation
    ):
        rec = await make_recommendation(await make_client(), await make_listing())
        await db_session.commit()

        result = await recommendation_service.attach_recommendation(db_session, rec.id)
        await db_session.rollback()

        assert await db_session.get(Property, result.property_id) is not None
        assert await db_session.get(ClientProperty, result.client_property_id) is not None
        await db_session.refresh(rec)
        assert rec.status == "attached"

    async def test_failure_mid_attach_rolls_back_property(
        self, db_session, make_client, make_listing, make_recommendation
    ):
        rec = await make_recommendation(await make_client(), await make_listing())
        await db_session.commit()

        with patch.object(
            ClientPropertyLinks, "link_property", AsyncMock(side_effect=_db_down())
        ):
            with pytest.raises(UpstreamUnavailable):
                await recommendation_service.attach_recommendation(db_session, rec.id)

        assert await _count(db_session, Property) == 0
        assert await _count(db_session, ClientProperty) == 0
        await db_session.refresh(rec)
        assert rec.status == "new"

    async def test_attach_is_retryable_after_outage(
        self, db_session, make_client, make_listing, make_recommendation
    ):
        rec = await make_recommendation(await make_client(), await make_listing())
        await db_session.commit()
        # The failed attempt rolls back and expires rec; keep the id
        rec_id = rec.id

        with patch.object(
            RecommendationStore, "mark_attached", AsyncMock(side_effect=_db_down())
        ):
            with pytest.raises(UpstreamUnavailable):
                await recommendation_service.attach_recommendation(db_session, rec_id)

        result = await recommendation_service.attach_recommendation(db_session, rec_id)

        assert result.property_created is True
        assert result.link_created is True
        assert await _count(db_session, Property) == 1
        assert await _count(db_session, ClientProperty) == 1
        await db_session.refresh(rec)
        assert rec.status == "attached"

    async def test_non_connectivity_db_error_propagates(
        self, db_session, make_client, make_listing, make_recommendation
    ):
        rec = await make_recommendation(await make_client(), await make_listing())
        await db_session.commit()
        integrity = IntegrityError("INSERT", {}, Exception("constraint failed"))

        with patch.object(RecommendationStore, "dismiss", AsyncMock(side_effect=integrity)):
            with pytest.raises(IntegrityError):
                await recommendation_service.set_recommendation_status(
                    db_session, rec.id, "dismissed"
                )

    async def test_dismiss_outage(self, db_session, make_client, make_listing, make_recommendation):
        rec = await make_recommendation(await make_client(), await make_listing())
        await db_session.commit()

        with patch.object(RecommendationStore, "dismiss", AsyncMock(side_effect=_db_down())):
            with pytest.raises(UpstreamUnavailable):
                await recommendation_service.set_recommendation_status(
                    db_session, rec.id, "dismissed"
                )

        await db_session.refresh(rec)
        assert rec.status == "new"


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class TestLinkOperations:
    async def test_list_links_unknown_client(self, db_session):
        with pytest.raises(NotFound):
            await recommendation_service.list_client_links(db_session, "ghost")

    async def test_manual_link_and_archive(self, db_session, make_client):
        client = await make_client()
        prop = Property(address="9 Elm St", source="manual")
        db_session.add(prop)
        await db_session.flush()

        link, created = await recommendation_service.link_property(
            db_session, client.id, prop.id, relationship="considering", interest_level="warm"
        )
        await recommendation_service.archive_link(db_session, link.id)

        assert created is True
        assert await recommendation_service.list_client_links(db_session, client.id) == []
        everything = await recommendation_service.list_client_links(
            db_session, client.id, include_archived=True
        )
        assert [l.id for l in everything] == [link.id]

        restored = await recommendation_service.restore_link(db_session, link.id)
        assert restored.status == "active"
        assert restored.relationship_tag == "considering"
