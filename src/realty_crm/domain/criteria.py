"""Client buying criteria as a validated value object.

``Criteria`` is the only shape the matcher accepts. Construction is the single
validation entry point: a ``Criteria`` that exists is a valid one.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from realty_crm.domain.enums import DealStyle
from realty_crm.domain.errors import ValidationError

# Separators agents type between locations: commas, semicolons, new lines, slashes, pipes
_LOCATION_SPLIT = re.compile(r"[,;\n/|]+")
_ZIP_TOKEN = re.compile(r"^[0-9]{5}$")


# ── Normalization helpers ────────────────────────────────────────────────────

def normalize_token(value: Optional[str]) -> str:
    """Lower-case, trim and collapse inner whitespace."""
    return re.sub(r"\s+", " ", (value or "").strip().lower())


def location_key(value: Optional[str]) -> str:
    """Punctuation- and space-insensitive key so "SanJose" == "San Jose"."""
    return re.sub(r"[^a-z0-9]", "", (value or "").lower())


def is_zip_token(token: str) -> bool:
    return bool(_ZIP_TOKEN.match(token))


def normalize_property_type(value: Optional[str]) -> str:
    """Canonical type tag: "Single Family" / "single-family" -> "single_family"."""
    return re.sub(r"[\s\-]+", "_", normalize_token(value))


def parse_preferred_locations(raw: Optional[str]) -> tuple[str, ...]:
    """Split free-text locations into ordered, de-duplicated tokens."""
    if not raw:
        return ()
    tokens = []
    for part in _LOCATION_SPLIT.split(raw):
        token = normalize_token(part.replace("(", "").replace(")", ""))
        if token and token not in tokens:
            tokens.append(token)
    return tuple(tokens)


# ── Value object ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Criteria:
    """A client's matching requirements.

    Empty ``preferred_locations`` means any location and empty
    ``property_types`` means any type. Unset numeric bounds are ``None``.
    """

    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_locations: tuple[str, ...] = ()
    min_beds: Optional[float] = None
    min_baths: Optional[float] = None
    deal_style: DealStyle = DealStyle.ANY
    property_types: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        for name in ("budget_min", "budget_max", "min_beds", "min_baths"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(name, f"must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValidationError(name, f"must be a finite number, got {value}")
            if value < 0:
                raise ValidationError(name, f"must be non-negative, got {value}")

        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_min > self.budget_max
        ):
            raise ValidationError(
                "budget_min",
                f"must not exceed budget_max ({self.budget_min} > {self.budget_max})",
            )

        # Frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "deal_style", _coerce_deal_style(self.deal_style))

        if isinstance(self.preferred_locations, str):
            locations = parse_preferred_locations(self.preferred_locations)
        else:
            locations = []
            for token in self.preferred_locations or ():
                token = normalize_token(token)
                if token and token not in locations:
                    locations.append(token)
            locations = tuple(locations)
        object.__setattr__(self, "preferred_locations", locations)

        object.__setattr__(
            self,
            "property_types",
            frozenset(
                normalize_property_type(t) for t in (self.property_types or ()) if normalize_token(t)
            ),
        )

    @property
    def has_budget(self) -> bool:
        return self.budget_min is not None or self.budget_max is not None

    @property
    def location_keys(self) -> dict[str, str]:
        """Map of location key -> original token (zip tokens excluded)."""
        return {location_key(t): t for t in self.preferred_locations if not is_zip_token(t)}

    @property
    def zip_tokens(self) -> frozenset[str]:
        return frozenset(t for t in self.preferred_locations if is_zip_token(t))

    @classmethod
    def from_client(cls, client) -> "Criteria":
        """Build criteria from a Client row (or anything with the same attributes)."""
        return cls(
            budget_min=_number_or_none(client.budget_min),
            budget_max=_number_or_none(client.budget_max),
            preferred_locations=parse_preferred_locations(client.preferred_locations),
            min_beds=_number_or_none(client.min_beds),
            min_baths=_number_or_none(client.min_baths),
            deal_style=client.deal_style or DealStyle.ANY,
            property_types=_as_iterable(client.property_types),
        )


def _coerce_deal_style(value) -> DealStyle:
    if value is None or value == "":
        return DealStyle.ANY
    if isinstance(value, DealStyle):
        return value
    try:
        return DealStyle(normalize_property_type(str(value)))
    except ValueError:
        allowed = ", ".join(s.value for s in DealStyle)
        raise ValidationError("deal_style", f"must be one of {allowed}, got {value!r}") from None


def _number_or_none(value):
    # Numeric columns come back as Decimal on some drivers
    if value is None or isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value  # let __post_init__ report it


def _as_iterable(value) -> Iterable[str]:
    if not value:
        return ()
    if isinstance(value, str):
        return [v for v in re.split(r"[,;|]+", value)]
    return value
