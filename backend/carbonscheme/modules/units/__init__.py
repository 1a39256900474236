"""Units module: distance, postcode and mass normalization."""

from carbonscheme.modules.units.constants import EARTH_RADIUS_KM, MILES_TO_KM
from carbonscheme.modules.units.conversion import (
    from_km,
    normalize_distance_unit,
    normalize_postcode,
    to_km,
    to_tonnes,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "MILES_TO_KM",
    "from_km",
    "normalize_distance_unit",
    "normalize_postcode",
    "to_km",
    "to_tonnes",
]
