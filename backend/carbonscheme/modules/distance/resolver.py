"""Distance resolution with a literal-value shortcut and network fallbacks.

Order of preference:

1. A distance typed by the user, converted to km.
2. Road distance between the geocoded postcodes.
3. Great-circle distance between the geocoded postcodes.
"""

from __future__ import annotations

import math
from types import TracebackType

from carbonscheme.core.config import Settings, get_settings
from carbonscheme.core.errors import ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import DistanceUnit
from carbonscheme.modules.distance.geocoding import Coordinates, PostcodeGeocoder
from carbonscheme.modules.distance.routing import RoadRouter
from carbonscheme.modules.units import EARTH_RADIUS_KM, normalize_postcode, to_km

logger = get_logger(__name__)

DEFAULT_MISSING_LOCATION_MESSAGE = "Enter a distance or set both postcodes."


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance in km."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(destination.longitude - origin.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class DistanceResolver:
    """Turn a pair of postcodes, or a typed distance, into kilometres.

    Nothing is persisted here; callers store the km value together with the
    unit the user entered.
    """

    def __init__(self, geocoder: PostcodeGeocoder, router: RoadRouter | None = None) -> None:
        self._geocoder = geocoder
        self._router = router

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DistanceResolver:
        settings = settings or get_settings()
        geocoder = PostcodeGeocoder(
            settings.geocoding_base_url,
            timeout=settings.distance_timeout_seconds,
        )
        router = None
        if settings.routing_enabled:
            router = RoadRouter(
                settings.routing_base_url,
                timeout=settings.distance_timeout_seconds,
            )
        return cls(geocoder, router)

    async def __aenter__(self) -> DistanceResolver:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._geocoder.aclose()
        if self._router is not None:
            await self._router.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(
        self,
        origin: str | None,
        destination: str | None,
        preferred_unit: DistanceUnit | str | None = DistanceUnit.KM,
        *,
        literal_distance: float | None = None,
        missing_message: str = DEFAULT_MISSING_LOCATION_MESSAGE,
    ) -> float:
        """Return a distance in km.

        Args:
            origin: Origin postcode.
            destination: Destination postcode.
            preferred_unit: Unit ``literal_distance`` is expressed in.
            literal_distance: Distance typed by the user; skips all lookups.
            missing_message: Error text when no distance and no postcode pair
                is available.

        Raises:
            ValidationError: neither a distance nor both postcodes supplied,
                or a negative distance.
            UnresolvedLocationError: a postcode is unknown.
            DistanceUnavailableError: the geocoding service is unreachable.
        """
        if literal_distance is not None:
            if math.isnan(literal_distance) or literal_distance < 0:
                raise ValidationError("Invalid distance")
            return to_km(literal_distance, preferred_unit)

        origin_pc = normalize_postcode(origin)
        destination_pc = normalize_postcode(destination)
        if origin_pc is None or destination_pc is None:
            raise ValidationError(missing_message)

        origin_coords = await self._geocoder.geocode(origin_pc)
        destination_coords = await self._geocoder.geocode(destination_pc)

        if self._router is not None:
            road_km = await self._router.route_km(origin_coords, destination_coords)
            if road_km is not None:
                logger.debug(
                    "distance_resolved",
                    origin=origin_pc,
                    destination=destination_pc,
                    source="road",
                    distance_km=road_km,
                )
                return road_km

        direct_km = haversine_km(origin_coords, destination_coords)
        log = logger.warning if self._router is not None else logger.debug
        log(
            "distance_fell_back_to_haversine",
            origin=origin_pc,
            destination=destination_pc,
            distance_km=round(direct_km, 3),
        )
        return direct_km
