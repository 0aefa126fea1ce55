"""Domain enumerations for client matching and recommendations.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class ListingStatus(str, Enum):
    """Normalized lifecycle status of a listing as reported by the feed."""

    ACTIVE = "active"
    PENDING = "pending"
    SOLD = "sold"
    OTHER = "other"


class DealStyle(str, Enum):
    """What kind of deal a buying client is after."""

    ANY = "any"
    TURNKEY = "turnkey"
    FIXER = "fixer"
    VALUE_ADD = "value_add"
    INVESTMENT = "investment"


class RecommendationStatus(str, Enum):
    """Lifecycle of a scored (client, listing) pairing."""

    NEW = "new"
    ATTACHED = "attached"
    DISMISSED = "dismissed"


class PropertySource(str, Enum):
    """Where a canonical property record came from."""

    LISTING = "listing"
    MANUAL = "manual"


class ClientPropertyStatus(str, Enum):
    """Whether a client/property link is shown by default."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class ClientPropertyRelationship(str, Enum):
    """How a client relates to a property."""

    FAVORITE = "favorite"
    RECOMMENDED = "recommended"
    CONSIDERING = "considering"
    TOURED = "toured"
    OFFERED = "offered"


class InterestLevel(str, Enum):
    """Agent's read on how interested the client is."""

    HOT = "hot"
    WARM = "warm"
    COLD = "cold"
