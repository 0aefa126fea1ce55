"""Deterministic requirement matcher.

Pure-function module. No database access and no I/O.

Given one client's ``Criteria`` and a pool of listings, drops every listing
that hard-fails a constraint and scores the rest with a transparent point
system. Every bonus appends exactly one human-readable reason, so a score can
always be explained line by line:

    Base                 10
    Within budget       +20   (any budget bound set)
    Budget comfort      +10   (at/below midpoint, or <= 90% of a lone max)
    City / zip match    +25   exact, +15 partial (punctuation/spacing differs)
    Beds                 +5   meets minimum, +8 exceeds
    Baths                +5   meets minimum, +8 exceeds
    Deal style signal   +10   signal word in remarks / title

Listings are plain objects exposing the ``Listing`` attributes so the matcher
can be fed ORM rows, fixtures, or offline exports alike.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from realty_crm.domain.criteria import (
    Criteria,
    location_key,
    normalize_property_type,
    normalize_token,
)
from realty_crm.domain.enums import DealStyle, ListingStatus
from realty_crm.services.listing_fields import normalize_listing_status

# ── Points ───────────────────────────────────────────────────────────────────

BASE_SCORE = 10
BUDGET_FIT = 20
BUDGET_COMFORT = 10
LOCATION_EXACT = 25
LOCATION_PARTIAL = 15
ROOMS_MEET = 5
ROOMS_EXCEED = 8
DEAL_STYLE = 10

# Share of a lone budget max under which a price counts as comfortable
MAX_ONLY_COMFORT_RATIO = 0.9

# Statuses excluded unless the caller asks for closed inventory
UNAVAILABLE_STATUSES = {ListingStatus.SOLD.value}

# ── Deal style signal words ─────────────────────────────────────────────────

DEAL_STYLE_SIGNALS: dict[DealStyle, tuple[str, ...]] = {
    DealStyle.TURNKEY: (
        "turnkey", "turn-key", "move-in ready", "move in ready",
        "fully renovated", "remodeled", "renovated",
    ),
    DealStyle.FIXER: (
        "fixer", "tlc", "handyman", "needs work", "contractor special",
        "as-is", "investor special",
    ),
    DealStyle.VALUE_ADD: (
        "value-add", "value add", "adu", "upside", "lot split",
        "below market rents", "expansion potential",
    ),
    DealStyle.INVESTMENT: (
        "income property", "cash flow", "cap rate", "rental", "tenant",
        "duplex", "triplex", "fourplex", "multi-unit",
    ),
}

_SIGNAL_PATTERNS: dict[DealStyle, list[tuple[str, re.Pattern]]] = {
    style: [(word, re.compile(rf"(?<![a-z0-9]){re.escape(word)}(?![a-z0-9])")) for word in words]
    for style, words in DEAL_STYLE_SIGNALS.items()
}


@dataclass(frozen=True)
class RankedCandidate:
    """A listing that passed every hard filter, with its score and reasons."""

    listing_id: str
    external_id: Optional[str]
    score: int
    reasons: tuple[str, ...]
    listed_at: Optional[datetime] = None
    listing: Any = field(default=None, compare=False, repr=False)


# ── Hard filters ─────────────────────────────────────────────────────────────

def _is_available(listing, include_closed: bool) -> bool:
    if include_closed:
        return True
    if getattr(listing, "is_active", True) is False:
        return False
    status = normalize_listing_status(_status_value(getattr(listing, "status", None)))
    return status.value not in UNAVAILABLE_STATUSES


def _status_value(status) -> str:
    return getattr(status, "value", status) or ""


def _postal(listing) -> str:
    return (getattr(listing, "postal_code", None) or "").strip()[:5]


def _location_hit(criteria: Criteria, listing) -> tuple[Optional[str], Optional[str]]:
    """Return (kind, label) where kind is "exact", "partial", "zip" or None."""
    city = (getattr(listing, "city", None) or "").strip()
    keys = criteria.location_keys
    if city and normalize_token(city) in criteria.preferred_locations:
        return "exact", city
    city_key = location_key(city)
    if city_key and city_key in keys:
        return "partial", city
    postal = _postal(listing)
    if postal and postal in criteria.zip_tokens:
        return "zip", postal
    return None, None


def passes_hard_filters(criteria: Criteria, listing, include_closed: bool = False) -> bool:
    """True when the listing satisfies every hard constraint in ``criteria``."""
    if not _is_available(listing, include_closed):
        return False

    price = getattr(listing, "list_price", None)
    if criteria.budget_min is not None and (price is None or price < criteria.budget_min):
        return False
    if criteria.budget_max is not None and (price is None or price > criteria.budget_max):
        return False

    if criteria.preferred_locations:
        kind, _ = _location_hit(criteria, listing)
        if kind is None:
            return False

    beds = getattr(listing, "beds", None)
    if criteria.min_beds is not None and (beds is None or beds < criteria.min_beds):
        return False
    baths = getattr(listing, "baths", None)
    if criteria.min_baths is not None and (baths is None or baths < criteria.min_baths):
        return False

    if criteria.property_types:
        ptype = normalize_property_type(getattr(listing, "property_type", None))
        if ptype not in criteria.property_types:
            return False

    return True


# ── Scoring ──────────────────────────────────────────────────────────────────

def _fmt_count(value) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _room_bonus(minimum, actual, noun: str) -> tuple[int, Optional[str]]:
    if minimum is None or actual is None:
        return 0, None
    if actual > minimum:
        return ROOMS_EXCEED, f"exceeds {noun} minimum ({_fmt_count(actual)} {noun}s)"
    return ROOMS_MEET, f"meets {noun} minimum"


def _deal_style_signal(style: DealStyle, listing) -> Optional[str]:
    if style == DealStyle.ANY:
        return None
    text = " ".join(
        t for t in (getattr(listing, "remarks", None), getattr(listing, "listing_title", None)) if t
    ).lower()
    if not text:
        return None
    for word, pattern in _SIGNAL_PATTERNS.get(style, []):
        if pattern.search(text):
            return word
    return None


def score_listing(criteria: Criteria, listing) -> tuple[int, list[str]]:
    """Score a listing that already passed the hard filters.

    Returns ``(score, reasons)`` with reasons in the fixed bonus order.
    """
    score = BASE_SCORE
    reasons: list[str] = []

    # 1. Budget
    price = getattr(listing, "list_price", None)
    if criteria.has_budget and price is not None:
        score += BUDGET_FIT
        reasons.append("within budget")
        if criteria.budget_min is not None and criteria.budget_max is not None:
            midpoint = (criteria.budget_min + criteria.budget_max) / 2
            if price <= midpoint:
                score += BUDGET_COMFORT
                reasons.append("below budget midpoint")
        elif criteria.budget_max is not None and price <= criteria.budget_max * MAX_ONLY_COMFORT_RATIO:
            score += BUDGET_COMFORT
            reasons.append("comfortably under budget max")

    # 2. Location
    if criteria.preferred_locations:
        kind, label = _location_hit(criteria, listing)
        if kind == "exact":
            score += LOCATION_EXACT
            reasons.append(f"matches preferred city: {label}")
        elif kind == "zip":
            score += LOCATION_EXACT
            reasons.append(f"matches preferred zip: {label}")
        elif kind == "partial":
            score += LOCATION_PARTIAL
            reasons.append(f"partial city match: {label}")

    # 3-4. Beds / baths
    for minimum, actual, noun in (
        (criteria.min_beds, getattr(listing, "beds", None), "bed"),
        (criteria.min_baths, getattr(listing, "baths", None), "bath"),
    ):
        points, reason = _room_bonus(minimum, actual, noun)
        if reason:
            score += points
            reasons.append(reason)

    # 5. Deal style
    signal = _deal_style_signal(criteria.deal_style, listing)
    if signal:
        score += DEAL_STYLE
        reasons.append(f"deal style signal ({criteria.deal_style.value}): {signal}")

    return score, reasons


# ── Main entry point ─────────────────────────────────────────────────────────

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Feeds mix aware and naive timestamps; naive ones are already UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def match(
    criteria: Criteria,
    listings: Iterable,
    *,
    include_closed: bool = False,
) -> list[RankedCandidate]:
    """Filter and rank ``listings`` for ``criteria``.

    Ordering: score descending, then most recently listed first (unknown
    listing dates last), then external id so equal inputs give equal output.
    """
    ranked: list[RankedCandidate] = []
    for listing in listings:
        if not passes_hard_filters(criteria, listing, include_closed=include_closed):
            continue
        score, reasons = score_listing(criteria, listing)
        ranked.append(
            RankedCandidate(
                listing_id=listing.id,
                external_id=getattr(listing, "external_id", None),
                score=score,
                reasons=tuple(reasons),
                listed_at=getattr(listing, "listed_at", None),
                listing=listing,
            )
        )

    # Stable sorts, least significant key first
    ranked.sort(key=lambda c: c.external_id or "")
    ranked.sort(
        key=lambda c: (c.listed_at is not None, _naive_utc(c.listed_at) or datetime.min),
        reverse=True,
    )
    ranked.sort(key=lambda c: c.score, reverse=True)
    return ranked
