"""SQLAlchemy ORM models for client matching.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for structured data (no JSONB)
- DateTime for timestamps (no TIMESTAMPTZ)
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from realty_crm.infra.database import Base, utcnow


# ---------------------------------------------------------------------------
# Client (owned by the client editing flow; read-only here)
# ---------------------------------------------------------------------------


class Client(Base):
    """Brokerage client with stored buying criteria."""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    brokerage_id = Column(String(36), nullable=True, index=True)
    agent_id = Column(String(36), nullable=True)
    name = Column(String(255), nullable=False, default="")

    # Buying criteria
    budget_min = Column(Float, nullable=True)
    budget_max = Column(Float, nullable=True)
    preferred_locations = Column(Text, nullable=True)  # free text, e.g. "Irvine, Tustin; 92618"
    min_beds = Column(Float, nullable=True)
    min_baths = Column(Float, nullable=True)
    deal_style = Column(String(20), nullable=True)  # any, turnkey, fixer, value_add, investment
    property_types = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    recommendations = relationship("PropertyRecommendation", back_populates="client")
    property_links = relationship("ClientProperty", back_populates="client")


# ---------------------------------------------------------------------------
# Listing feed (refreshed out-of-band by the IDX sync)
# ---------------------------------------------------------------------------


class Listing(Base):
    """Externally sourced listing row as normalized by the feed import."""

    __tablename__ = "mls_listings"
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_mls_listings_source_external_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    brokerage_id = Column(String(36), nullable=True, index=True)
    source = Column(String(100), nullable=False, default="mls")
    external_id = Column(String(100), nullable=False)  # MLS number
    status = Column(String(20), nullable=False, default="active")  # active, pending, sold, other
    is_active = Column(Boolean, nullable=False, default=True)
    list_price = Column(Float, nullable=True)

    listing_title = Column(String(500), nullable=True)
    street_number = Column(String(50), nullable=True)
    street_dir_prefix = Column(String(20), nullable=True)
    street_name = Column(String(200), nullable=True)
    street_suffix = Column(String(50), nullable=True)
    unit = Column(String(50), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    postal_code = Column(String(20), nullable=True)

    beds = Column(Float, nullable=True)
    baths = Column(Float, nullable=True)
    sqft = Column(Integer, nullable=True)
    lot_sqft = Column(Integer, nullable=True)
    year_built = Column(Integer, nullable=True)
    property_type = Column(String(50), nullable=True)
    remarks = Column(Text, nullable=True)

    listed_at = Column(DateTime, nullable=True)
    last_seen_at = Column(DateTime, nullable=True)
    raw_payload = Column(JSON, nullable=True)

    recommendations = relationship("PropertyRecommendation", back_populates="listing")


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


class PropertyRecommendation(Base):
    """Scored (client, listing) pairing with a new/attached/dismissed lifecycle."""

    __tablename__ = "property_recommendations"
    __table_args__ = (
        UniqueConstraint("client_id", "listing_id", name="uq_recommendations_client_listing"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_id = Column(
        String(36), ForeignKey("mls_listings.id", ondelete="SET NULL"), nullable=True
    )
    score = Column(Integer, nullable=False, default=0)
    reasons = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="new", index=True)
    last_seen_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("Client", back_populates="recommendations")
    listing = relationship("Listing", back_populates="recommendations")


# ---------------------------------------------------------------------------
# Canonical properties and client links
# ---------------------------------------------------------------------------


class Property(Base):
    """Canonical internal property. At most one row per external listing id."""

    __tablename__ = "properties"
    __table_args__ = (
        UniqueConstraint("external_id", name="uq_properties_external_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    brokerage_id = Column(String(36), nullable=True, index=True)
    external_id = Column(String(100), nullable=True)  # MLS number; null for manual entries
    source = Column(String(20), nullable=False, default="manual")  # listing, manual
    address = Column(String(500), nullable=False, default="")
    city = Column(String(100))
    state = Column(String(50))
    zip = Column(String(20))
    list_price = Column(Float)
    beds = Column(Float)
    baths = Column(Float)
    sqft = Column(Integer)
    lot_sqft = Column(Integer)
    year_built = Column(Integer)
    property_type = Column(String(50))
    status = Column(String(20))
    primary_photo_url = Column(String(500))
    pipeline_stage = Column(String(30), default="suggested")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client_links = relationship("ClientProperty", back_populates="property")


class ClientProperty(Base):
    """A client's relationship to a canonical property. Holds all client feedback."""

    __tablename__ = "client_properties"
    __table_args__ = (
        UniqueConstraint("client_id", "property_id", name="uq_client_properties_pair"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(
        String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_id = Column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relationship_tag = Column("relationship", String(20), nullable=True)
    interest_level = Column(String(10), nullable=True)  # hot, warm, cold
    is_favorite = Column(Boolean, nullable=False, default=False)
    client_feedback = Column(Text, nullable=True)
    client_rating = Column(Integer, nullable=True)  # 1-5
    status = Column(String(20), nullable=False, default="active")  # active, archived
    archived_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("Client", back_populates="property_links")
    property = relationship("Property", back_populates="client_links")
