"""Shared fakes for the external collaborators of round generation."""

from typing import Callable, List, Optional

import numpy as np
import pytest

from py_geoguess.core.panorama import PanoramaLocator, PanoramaQuery
from py_geoguess.core.regions import ShapeCache
from py_geoguess.core.round_generator import RoundGenerator
from py_geoguess.core.types import Coordinate


class BoxRegion:
    """Rectangular region with a fixed, declared area."""

    def __init__(self, name, area, min_lat, max_lat, min_lng, max_lng, rng=None):
        self._name = name
        self._area = area
        self.bounds = (min_lat, max_lat, min_lng, max_lng)
        self.rng = rng if rng is not None else np.random.default_rng(0)

    def name(self):
        return self._name

    def area(self):
        return self._area

    def random_point_within(self):
        min_lat, max_lat, min_lng, max_lng = self.bounds
        return Coordinate(
            lat=float(self.rng.uniform(min_lat, max_lat)),
            lng=float(self.rng.uniform(min_lng, max_lng)),
        )

    def contains(self, point):
        min_lat, max_lat, min_lng, max_lng = self.bounds
        return min_lat <= point.lat <= max_lat and min_lng <= point.lng <= max_lng


class IdentityLookup:
    """Panorama lookup that finds a panorama exactly at every queried point."""

    def __init__(self, on_query: Optional[Callable[[int], None]] = None):
        self.queries: List[PanoramaQuery] = []
        self.on_query = on_query

    async def query(self, request):
        self.queries.append(request)
        if self.on_query is not None:
            self.on_query(len(self.queries))
        return request.location


class EmptyLookup:
    """Panorama lookup that never finds anything."""

    def __init__(self):
        self.queries: List[PanoramaQuery] = []

    async def query(self, request):
        self.queries.append(request)
        return None


class RecordingStore:
    """Round store keeping every write in memory."""

    def __init__(self, error: Exception = None):
        self.writes = []
        self.error = error

    async def write_rounds(self, path, rounds):
        if self.error is not None:
            raise self.error
        self.writes.append((path, dict(rounds)))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def weighted_regions(rng):
    """Three disjoint boxes with areas 10, 20 and 70."""
    return [
        BoxRegion("charlie", 70.0, 10.0, 20.0, 10.0, 20.0, rng),
        BoxRegion("alpha", 10.0, -20.0, -10.0, -20.0, -10.0, rng),
        BoxRegion("bravo", 20.0, 30.0, 40.0, -5.0, 5.0, rng),
    ]


@pytest.fixture
def make_generator(rng):
    """Factory for a RoundGenerator wired to in-memory collaborators."""

    def factory(lookup, store=None, regions=(), shape_opts=None, fetch_shape=None,
                fetch_route=None, round_count=5):
        cache = ShapeCache()
        for region in regions:
            cache.put(region.name(), region)

        async def no_shape(relative_path):
            return None

        async def no_route(url):
            return []

        return RoundGenerator(
            room_path="rooms/test",
            locator=PanoramaLocator(lookup),
            store=store if store is not None else RecordingStore(),
            get_shape_from_cache=cache.get,
            put_shape_in_cache=cache.put,
            get_shape_opts=(shape_opts or {}).get,
            fetch_shape=fetch_shape or no_shape,
            fetch_route=fetch_route or no_route,
            round_count=round_count,
            rng=rng,
        )

    return factory
