"""Distance resolution: postcode geocoding, road routing and great-circle fallback."""

from carbonscheme.modules.distance.geocoding import (
    Coordinates,
    DistanceUnavailableError,
    PostcodeGeocoder,
    UnresolvedLocationError,
)
from carbonscheme.modules.distance.resolver import DistanceResolver, haversine_km
from carbonscheme.modules.distance.routing import RoadRouter

__all__ = [
    "Coordinates",
    "DistanceResolver",
    "DistanceUnavailableError",
    "PostcodeGeocoder",
    "RoadRouter",
    "UnresolvedLocationError",
    "haversine_km",
]
