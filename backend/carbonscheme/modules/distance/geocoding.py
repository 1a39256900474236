"""Postcode geocoding against a postcodes.io-compatible API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from carbonscheme.core.errors import ExternalServiceError, ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.modules.units import normalize_postcode

logger = get_logger(__name__)


class UnresolvedLocationError(ValidationError):
    """A postcode could not be turned into coordinates."""


class DistanceUnavailableError(ExternalServiceError):
    """No distance could be produced because the lookup services are unreachable."""


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class PostcodeGeocoder:
    """Look up the centroid of a postcode.

    Usage::

        geocoder = PostcodeGeocoder("https://api.postcodes.io")
        coords = await geocoder.geocode("SW1A 1AA")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def geocode(self, postcode: str) -> Coordinates:
        """Return coordinates for ``postcode``.

        Raises:
            UnresolvedLocationError: the service does not know the postcode.
            DistanceUnavailableError: the service could not be reached.
        """
        normalized = normalize_postcode(postcode)
        if normalized is None:
            raise UnresolvedLocationError("Postcode is required")

        client = await self._get_client()
        try:
            response = await client.get(f"/postcodes/{quote(normalized)}")
        except httpx.HTTPError as exc:
            logger.warning("geocoding_request_failed", postcode=normalized, error=str(exc))
            raise DistanceUnavailableError(
                f"Postcode lookup unavailable for {normalized}"
            ) from exc

        if response.status_code >= 500:
            logger.warning(
                "geocoding_service_error",
                postcode=normalized,
                status_code=response.status_code,
            )
            raise DistanceUnavailableError(f"Postcode lookup unavailable for {normalized}")
        if not response.is_success:
            raise UnresolvedLocationError(f"Unable to geocode postcode: {normalized}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise DistanceUnavailableError(
                f"Postcode lookup returned an unreadable response for {normalized}"
            ) from exc

        result = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise UnresolvedLocationError(f"Invalid postcode: {normalized}")

        latitude = _as_number(result.get("latitude"))
        longitude = _as_number(result.get("longitude"))
        if latitude is None or longitude is None:
            raise UnresolvedLocationError(f"Invalid postcode: {normalized}")
        return Coordinates(latitude=latitude, longitude=longitude)
