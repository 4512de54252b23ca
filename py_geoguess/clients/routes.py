"""Route files: KML download and coordinate extraction."""

import xml.etree.ElementTree as ET
from typing import List, Optional

import httpx
import structlog

from ..config import settings
from ..core.types import Coordinate

logger = structlog.get_logger()


def parse_kml_points(kml_text: str) -> List[Coordinate]:
    """
    One point per ``coordinates`` element of a KML document.

    Only the first ``lng,lat[,alt]`` tuple of each element is used, so a
    placemark contributes a single point whatever its geometry. Malformed or
    out-of-range tuples are skipped.
    """
    root = ET.fromstring(kml_text)

    points = []
    for element in root.iter():
        # Namespace agnostic match on the local name
        if element.tag.rsplit("}", 1)[-1] != "coordinates" or not element.text:
            continue
        first_tuple = element.text.strip().split()
        if not first_tuple:
            continue
        parts = first_tuple[0].split(",")
        try:
            points.append(Coordinate(lat=float(parts[1]), lng=float(parts[0])))
        except (IndexError, ValueError):
            logger.warning("Skipping invalid route coordinate", value=first_tuple[0])
    return points


async def fetch_route(url: str, client: Optional[httpx.AsyncClient] = None) -> List[Coordinate]:
    """Download the KML document at ``url`` and extract its points."""
    logger.info("Fetching route", url=url)
    if client is not None:
        resp = await client.get(url)
    else:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as own_client:
            resp = await own_client.get(url)
    resp.raise_for_status()

    points = parse_kml_points(resp.text)
    logger.info("Route parsed", url=url, points=len(points))
    return points
