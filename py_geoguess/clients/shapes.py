"""
Shape downloads.

Shapes are GeoJSON documents hosted under ``settings.shapes_base_url``. A
catalog document in the same place maps shape names to their relative paths.
"""

from typing import Any, Dict, Optional

import httpx
import numpy as np
import structlog
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.ops import unary_union

from ..config import settings
from ..core.regions import PolygonRegion
from ..core.types import ShapeOptions

logger = structlog.get_logger()


def _join_url(base_url: str, relative_path: str) -> str:
    return f"{base_url.rstrip('/')}/{relative_path.lstrip('/')}"


def region_from_geojson(
    name: str, document: Dict[str, Any], rng: Optional[np.random.Generator] = None
) -> Optional[PolygonRegion]:
    """
    Build a region from a GeoJSON Feature, FeatureCollection or geometry.

    Non-polygonal members are ignored. Returns None when nothing polygonal is left.
    """
    doc_type = document.get("type")
    if doc_type == "FeatureCollection":
        geometries = [f.get("geometry") for f in document.get("features", [])]
        name = document.get("name") or name
    elif doc_type == "Feature":
        geometries = [document.get("geometry")]
        name = (document.get("properties") or {}).get("name") or name
    else:
        geometries = [document]

    polygons = []
    for geometry in geometries:
        if not geometry:
            continue
        geom = shape(geometry)
        if isinstance(geom, (Polygon, MultiPolygon)) and not geom.is_empty:
            polygons.append(geom)

    if not polygons:
        return None

    merged = polygons[0] if len(polygons) == 1 else unary_union(polygons)
    return PolygonRegion(name, merged, rng=rng)


class ShapeFetcher:
    """Downloads shapes and turns them into regions."""

    def __init__(
        self,
        base_url: str = None,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.base_url = base_url or settings.shapes_base_url
        self.rng = rng
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_shape(self, relative_path: str) -> Optional[PolygonRegion]:
        """
        Download the shape at ``relative_path``.

        Returns:
            The region, or None if the document holds no usable polygon
        """
        url = _join_url(self.base_url, relative_path)
        logger.info("Fetching shape", url=url)
        resp = await self._client.get(url)
        if resp.status_code == 404:
            logger.warning("Shape not found", url=url)
            return None
        resp.raise_for_status()

        try:
            document = resp.json()
        except ValueError:
            logger.warning("Shape document is not JSON", url=url)
            return None

        region = region_from_geojson(relative_path, document, rng=self.rng)
        if region is None:
            logger.warning("Shape document has no polygons", url=url)
        return region


class ShapeCatalog:
    """Name to ``ShapeOptions`` lookup backed by the hosted catalog document."""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, ShapeOptions] = {
            name: ShapeOptions(relative_path=path) for name, path in (entries or {}).items()
        }

    def get_shape_opts(self, name: str) -> Optional[ShapeOptions]:
        return self._entries.get(name)

    def names(self):
        return sorted(self._entries)

    async def load(self, client: httpx.AsyncClient, base_url: str = None, catalog_file: str = None) -> int:
        """
        Replace the entries with the hosted catalog.

        The catalog is either ``{name: relative_path}`` or a list of
        ``{"name", "relative_path"}`` objects.

        Returns:
            Number of entries loaded
        """
        url = _join_url(base_url or settings.shapes_base_url, catalog_file or settings.shape_catalog_file)
        resp = await client.get(url)
        resp.raise_for_status()
        data = resp.json()

        if isinstance(data, list):
            data = {item["name"]: item["relative_path"] for item in data}

        self._entries = {name: ShapeOptions(relative_path=path) for name, path in data.items()}
        logger.info("Shape catalog loaded", url=url, shapes=len(self._entries))
        return len(self._entries)
