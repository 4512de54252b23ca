"""Area-weighted sampling across a set of regions."""

from typing import List, Optional, Sequence

import numpy as np
import structlog

from ..utils.random import get_rng
from .errors import RegionSelectionError
from .types import Coordinate, Region

logger = structlog.get_logger()


class RegionPointSampler:
    """
    Picks a region with probability proportional to its area, then a point inside it.

    Regions are sorted by name on construction so that a seeded generator
    reproduces the same draws for the same inputs.
    """

    def __init__(self, regions: Sequence[Region], rng: Optional[np.random.Generator] = None):
        self.regions: List[Region] = sorted(regions, key=lambda region: region.name())
        self.rng = rng if rng is not None else get_rng()

    @property
    def total_area(self) -> float:
        return sum(region.area() for region in self.regions)

    def select_region(self) -> Region:
        """
        Area-weighted region draw with a linear cumulative scan.

        Raises:
            RegionSelectionError: If the set is empty or has no area
        """
        if not self.regions:
            raise RegionSelectionError("Cannot select a region from an empty set")

        total_area = self.total_area
        if not total_area > 0:
            raise RegionSelectionError(
                f"Cannot select a region, total area is {total_area}"
            )

        threshold = self.rng.uniform(0, total_area)

        accumulated = 0.0
        for region in self.regions:
            accumulated += region.area()
            if accumulated > threshold:
                return region

        logger.error("Region scan ended without a match", threshold=threshold, total_area=total_area)
        raise RegionSelectionError("Failed to select a random region")

    def sample_point(self) -> Coordinate:
        return self.select_region().random_point_within()
