"""Road distance between two coordinates via an OSRM-compatible service."""

from __future__ import annotations

import httpx

from carbonscheme.core.logging import get_logger
from carbonscheme.modules.distance.geocoding import Coordinates

logger = get_logger(__name__)


class RoadRouter:
    """Driving distance lookup. Every failure mode returns ``None``."""

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

    async def route_km(self, origin: Coordinates, destination: Coordinates) -> float | None:
        # OSRM takes lon,lat pairs
        path = (
            f"/route/v1/driving/{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )
        client = await self._get_client()
        try:
            response = await client.get(path, params={"overview": "false"})
        except httpx.HTTPError as exc:
            logger.warning("routing_request_failed", error=str(exc))
            return None
        if not response.is_success:
            logger.warning("routing_service_error", status_code=response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("routing_response_unreadable")
            return None

        routes = payload.get("routes") if isinstance(payload, dict) else None
        if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
            return None
        meters = routes[0].get("distance")
        if isinstance(meters, bool) or not isinstance(meters, (int, float)):
            return None
        return float(meters) / 1000
