"""Distance and postcode normalization.

All persisted distances are kilometres; miles appear only at the edges,
when a user enters a value or a report displays one.
"""

from __future__ import annotations

import re

from carbonscheme.db.models import DistanceUnit
from carbonscheme.modules.units.constants import MILES_TO_KM, TONNES_PER_MASS_UNIT

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_distance_unit(value: str | DistanceUnit | None) -> DistanceUnit:
    """Anything other than "mi" (case-insensitive) is treated as km."""
    if isinstance(value, DistanceUnit):
        return value
    if value is not None and value.strip().lower() == DistanceUnit.MI.value:
        return DistanceUnit.MI
    return DistanceUnit.KM


def to_km(value: float, unit: str | DistanceUnit | None) -> float:
    if normalize_distance_unit(unit) is DistanceUnit.MI:
        return value * MILES_TO_KM
    return value


def from_km(km: float, unit: str | DistanceUnit | None) -> float:
    if normalize_distance_unit(unit) is DistanceUnit.MI:
        return km / MILES_TO_KM
    return km


def normalize_postcode(value: str | None) -> str | None:
    """Strip all whitespace and uppercase. Empty input becomes ``None``."""
    if value is None:
        return None
    compact = _WHITESPACE_RE.sub("", value).upper()
    return compact or None


def to_tonnes(value: float, unit: str | None) -> float:
    """Convert a mass to tonnes; unknown units are assumed to be tonnes already."""
    factor = TONNES_PER_MASS_UNIT.get((unit or "").strip().lower())
    if factor is None:
        return value
    return value * factor
