"""
Polygon regions and the in-memory shape cache.

A ``PolygonRegion`` is the concrete Region produced by the shape fetcher:
a shapely geometry in (lng, lat) order with a spherical area and uniform
rejection sampling inside its bounding box.
"""

from typing import Dict, Optional

import numpy as np
import structlog
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.prepared import prep

from ..utils.random import get_rng
from .errors import RegionSelectionError
from .geodesy import polygon_area_m2
from .types import Coordinate, Region

logger = structlog.get_logger()

MAX_SAMPLING_DRAWS = 10000


def _polygons(geometry: BaseGeometry):
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    raise ValueError(f"Unsupported region geometry: {geometry.geom_type}")


class PolygonRegion:
    """Region backed by a shapely Polygon or MultiPolygon."""

    def __init__(
        self,
        name: str,
        geometry: BaseGeometry,
        rng: Optional[np.random.Generator] = None,
    ):
        self._name = name
        self.geometry = geometry
        self.rng = rng if rng is not None else get_rng()

        self._area = sum(
            polygon_area_m2(
                [polygon.exterior.coords] + [hole.coords for hole in polygon.interiors]
            )
            for polygon in _polygons(geometry)
        )
        self._prepared = prep(geometry)

    def name(self) -> str:
        return self._name

    def area(self) -> float:
        return self._area

    def random_point_within(self) -> Coordinate:
        """
        Uniform point inside the geometry.

        Raises:
            RegionSelectionError: If no draw landed inside the geometry
        """
        min_lng, min_lat, max_lng, max_lat = self.geometry.bounds
        for _ in range(MAX_SAMPLING_DRAWS):
            lng = float(self.rng.uniform(min_lng, max_lng))
            lat = float(self.rng.uniform(min_lat, max_lat))
            if self._prepared.contains(Point(lng, lat)):
                return Coordinate(lat=lat, lng=lng)

        logger.error("Region sampling exhausted", region=self._name, draws=MAX_SAMPLING_DRAWS)
        raise RegionSelectionError(f"Could not sample a point inside {self._name}")

    def __repr__(self):
        return f"PolygonRegion(name={self._name!r}, area={self._area:.0f})"


class ShapeCache:
    """Shapes already fetched during this process, by name."""

    def __init__(self):
        self._shapes: Dict[str, Region] = {}

    def get(self, name: str) -> Optional[Region]:
        return self._shapes.get(name)

    def put(self, name: str, region: Region) -> None:
        self._shapes[name] = region

    def __contains__(self, name: str) -> bool:
        return name in self._shapes

    def __len__(self) -> int:
        return len(self._shapes)
