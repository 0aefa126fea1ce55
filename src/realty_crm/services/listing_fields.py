"""Derived fields for feed listings.

Pure helpers, NO database access. The raw feed payload is only ever read
here, for display fields; scoring never looks at it.
"""

from __future__ import annotations

from typing import Optional

from realty_crm.domain.enums import ListingStatus

_ACTIVE_STATUSES = {
    "active",
    "comingsoon",
    "coming soon",
    "activeundercontract",
    "active under contract",
}
_PENDING_STATUSES = {
    "pending",
    "undercontract",
    "under contract",
    "contingent",
    "hold",
}
_SOLD_STATUSES = {"closed", "sold"}

# Thumbnail keys seen across RESO feeds, in preference order
_PHOTO_KEYS = ("ThumbnailUrl", "thumbnailUrl", "PrimaryPhotoUrl")


def normalize_listing_status(raw) -> ListingStatus:
    """Collapse a feed's StandardStatus-ish value onto our four statuses."""
    s = str(raw or "").strip().lower()
    if s in _ACTIVE_STATUSES:
        return ListingStatus.ACTIVE
    if s in _PENDING_STATUSES:
        return ListingStatus.PENDING
    if s in _SOLD_STATUSES:
        return ListingStatus.SOLD
    return ListingStatus.OTHER


def build_address_line(listing) -> str:
    """Street line from the listing's address parts, e.g. "12 N Main St #4"."""
    parts = [
        getattr(listing, name, None)
        for name in ("street_number", "street_dir_prefix", "street_name", "street_suffix")
    ]
    address = " ".join(str(p).strip() for p in parts if p and str(p).strip())
    unit = getattr(listing, "unit", None)
    if unit:
        address = f"{address} #{unit}" if address else f"#{unit}"
    return address or getattr(listing, "listing_title", None) or "(No address)"


def primary_photo_url(raw_payload) -> Optional[str]:
    """Best-effort primary photo from the raw feed payload."""
    if not isinstance(raw_payload, dict):
        return None
    for key in _PHOTO_KEYS:
        url = raw_payload.get(key)
        if isinstance(url, str) and url.startswith("http"):
            return url
    return None
