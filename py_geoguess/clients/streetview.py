"""Street View image metadata client implementing the panorama lookup."""

from typing import Optional

import httpx
import structlog

from ..config import settings
from ..core.errors import LocatorError
from ..core.panorama import PanoramaQuery
from ..core.types import Coordinate

logger = structlog.get_logger()

STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"


class StreetViewLookup:
    """
    Panorama lookup backed by the Street View image metadata endpoint.

    The metadata endpoint always answers with the panorama nearest to the
    requested location, so the query's ``preference`` is implied.
    """

    def __init__(
        self,
        api_key: str = None,
        client: Optional[httpx.AsyncClient] = None,
        metadata_url: str = None,
    ):
        self.api_key = api_key if api_key is not None else settings.streetview_api_key
        self.metadata_url = metadata_url or settings.streetview_metadata_url
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def query(self, request: PanoramaQuery) -> Optional[Coordinate]:
        params = {
            "location": f"{request.location.lat},{request.location.lng}",
            "radius": int(round(request.radius_m)),
            "source": request.source,
            "key": self.api_key,
        }
        try:
            resp = await self._client.get(self.metadata_url, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise LocatorError(f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise LocatorError(type(exc).__name__) from exc
        except ValueError as exc:
            raise LocatorError("INVALID_RESPONSE") from exc

        status = payload.get("status")
        if status == STATUS_ZERO_RESULTS:
            return None
        if status != STATUS_OK:
            logger.error("Panorama lookup failed", status=status, error=payload.get("error_message"))
            raise LocatorError(str(status))

        location = payload.get("location") or {}
        if location.get("lat") is None or location.get("lng") is None:
            return None
        return Coordinate(lat=float(location["lat"]), lng=float(location["lng"]))
