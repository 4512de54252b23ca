"""
Panorama lookups on top of an external street-level imagery service.

The locator never retries a failing service: ``None`` means "nothing in
range" and is the only outcome callers may retry on. Any other failure is
raised by the lookup as ``LocatorError`` and propagates unchanged.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

import structlog

from ..config import settings
from .geodesy import destination_point, haversine_distance_km
from .types import Coordinate

logger = structlog.get_logger()

PREFERENCE_NEAREST = "nearest"
SOURCE_OUTDOOR = "outdoor"

# Search radius as a fraction of the jump distance
JUMP_RADIUS_RATIO = 0.1


@dataclass(frozen=True)
class PanoramaQuery:
    """A single request to the panorama service."""

    location: Coordinate
    radius_m: float
    preference: str = PREFERENCE_NEAREST
    source: str = SOURCE_OUTDOOR


class PanoramaLookup(Protocol):
    """The external panorama capability."""

    async def query(self, request: PanoramaQuery) -> Optional[Coordinate]:
        """Return the panorama position, ``None`` when nothing is in range."""
        ...


@dataclass(frozen=True)
class JumpResult:
    """Outcome of a successful bearing jump."""

    destination: Coordinate
    actual_distance_km: float


def jump_attempt_plan(distance_km: float, attempts: int = None) -> List[Tuple[float, float]]:
    """
    Linear backoff schedule for a bearing jump.

    Attempt ``a`` targets ``distance_km * (attempts - a) / attempts`` and
    searches a radius of 10% of that target distance.

    Returns:
        List of ``(target_distance_km, radius_m)`` pairs, first attempt first
    """
    attempts = attempts or settings.jump_attempts
    plan = []
    for attempt in range(attempts):
        fraction = (attempts - attempt) / attempts
        target_km = distance_km * fraction
        radius_m = distance_km * JUMP_RADIUS_RATIO * fraction * 1000
        plan.append((target_km, radius_m))
    return plan


class PanoramaLocator:
    """Finds verified panorama positions near candidate points."""

    def __init__(self, lookup: PanoramaLookup, default_radius_m: float = None):
        self.lookup = lookup
        self.default_radius_m = default_radius_m or settings.default_search_radius_m

    async def find_nearest(self, point: Coordinate, radius_m: float = None) -> Optional[Coordinate]:
        """
        Closest outdoor panorama within ``radius_m`` of ``point``.

        Args:
            point: Candidate location
            radius_m: Search radius in meters, defaults to 40 km

        Returns:
            Panorama position or None if none is in range
        """
        if radius_m is None:
            radius_m = self.default_radius_m
        return await self.lookup.query(PanoramaQuery(location=point, radius_m=radius_m))

    async def jump_by_distance_and_bearing(
        self, origin: Coordinate, distance_km: float, bearing_deg: float
    ) -> Optional[JumpResult]:
        """
        Jump to a panorama roughly ``distance_km`` away along ``bearing_deg``.

        The full distance is tried first; each failed attempt backs off
        linearly toward the origin with a proportionally narrower search.

        Returns:
            JumpResult with the distance to the panorama actually found, or
            None when every attempt came back empty
        """
        for attempt, (target_km, radius_m) in enumerate(jump_attempt_plan(distance_km)):
            candidate = destination_point(origin, target_km, bearing_deg)
            logger.debug(
                "Jump attempt",
                attempt=attempt,
                target_km=target_km,
                radius_m=radius_m,
            )
            panorama = await self.find_nearest(candidate, radius_m)
            if panorama is not None:
                logger.debug("Jump found panorama", lat=panorama.lat, lng=panorama.lng)
                return JumpResult(
                    destination=panorama,
                    actual_distance_km=haversine_distance_km(origin, panorama),
                )

        logger.info("Jump found no panorama", distance_km=distance_km, bearing_deg=bearing_deg)
        return None
