"""Shared test infrastructure for the matching test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- make_client: factory for Client rows with buying criteria
- make_listing: factory for feed Listing rows
- make_recommendation: factory for PropertyRecommendation rows
- api_client: factory for an HTTPX AsyncClient bound to a test FastAPI app
"""

import uuid
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base first, then models to register all tables
from realty_crm.infra.database import Base, configure_sqlite

import realty_crm.domain.models  # noqa: F401

from realty_crm.domain.models import Client, Listing, PropertyRecommendation


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
    )
    configure_sqlite(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_client(db_session):
    """Factory that creates a Client row.

    Usage:
        client = await make_client(budget_min=800000, preferred_locations="Irvine")
    """
    async def _factory(
        brokerage_id: str = "brokerage-1",
        name: str = "Test Client",
        budget_min=None,
        budget_max=None,
        preferred_locations=None,
        min_beds=None,
        min_baths=None,
        deal_style=None,
        property_types=None,
    ) -> Client:
        client = Client(
            id=str(uuid.uuid4()),
            brokerage_id=brokerage_id,
            name=name,
            budget_min=budget_min,
            budget_max=budget_max,
            preferred_locations=preferred_locations,
            min_beds=min_beds,
            min_baths=min_baths,
            deal_style=deal_style,
            property_types=property_types,
        )
        db_session.add(client)
        await db_session.flush()
        return client

    return _factory


# ---------------------------------------------------------------------------
# Listing factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_listing(db_session):
    """Factory that creates a Listing row.

    Usage:
        listing = await make_listing(external_id="MLS123", list_price=950000)
    """
    async def _factory(
        external_id: str | None = None,
        brokerage_id: str = "brokerage-1",
        list_price=950000,
        city: str | None = "Irvine",
        state: str | None = "CA",
        postal_code: str | None = "92618",
        status: str = "active",
        is_active: bool = True,
        beds=3,
        baths=2,
        sqft=1800,
        property_type: str | None = "single_family",
        remarks: str | None = None,
        listed_at: datetime | None = None,
        **extra,
    ) -> Listing:
        listing = Listing(
            id=str(uuid.uuid4()),
            brokerage_id=brokerage_id,
            source="mls",
            external_id=external_id or f"MLS{uuid.uuid4().hex[:8].upper()}",
            list_price=list_price,
            city=city,
            state=state,
            postal_code=postal_code,
            status=status,
            is_active=is_active,
            beds=beds,
            baths=baths,
            sqft=sqft,
            property_type=property_type,
            remarks=remarks,
            listed_at=listed_at,
            **extra,
        )
        db_session.add(listing)
        await db_session.flush()
        return listing

    return _factory


# ---------------------------------------------------------------------------
# Recommendation factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_recommendation(db_session):
    """Factory that creates a PropertyRecommendation row directly."""
    async def _factory(
        client: Client,
        listing: Listing | None,
        status: str = "new",
        score: int = 50,
        reasons: list[str] | None = None,
    ) -> PropertyRecommendation:
        rec = PropertyRecommendation(
            id=str(uuid.uuid4()),
            client_id=client.id,
            listing_id=listing.id if listing is not None else None,
            score=score,
            reasons=reasons if reasons is not None else ["within budget"],
            status=status,
        )
        db_session.add(rec)
        await db_session.flush()
        return rec

    return _factory


# ---------------------------------------------------------------------------
# HTTP client factory
# ---------------------------------------------------------------------------

@pytest.fixture
def api_client(db_session):
    """Build an HTTPX AsyncClient wired to a test FastAPI app.

    Uses a fresh FastAPI app with only the matching routers so the lifespan
    (which touches the configured database) never runs.
    """
    def _factory() -> AsyncClient:
        from fastapi import FastAPI

        from realty_crm.app.error_handlers import register_error_handlers
        from realty_crm.app.routes import client_properties, recommendations
        from realty_crm.infra.database import get_db

        test_app = FastAPI()
        register_error_handlers(test_app)
        test_app.include_router(recommendations.client_router)
        test_app.include_router(recommendations.router)
        test_app.include_router(client_properties.client_router)
        test_app.include_router(client_properties.router)

        async def _override_get_db():
            yield db_session

        test_app.dependency_overrides[get_db] = _override_get_db

        return AsyncClient(
            transport=ASGITransport(app=test_app),
            base_url="http://testserver",
        )

    return _factory
