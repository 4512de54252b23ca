"""Point source over a shuffled list of route coordinates."""

from typing import List, Optional, Sequence

import numpy as np

from ..utils.random import get_rng
from .types import Coordinate


class RoutePointSource:
    """
    Hands out route points one at a time, consuming the list.

    The first call reads element 0 without removing it; every later call pops
    the last element. Element 0 is therefore handed out twice: once first and
    once more when it is the only element left.
    """

    def __init__(self, points: Sequence[Coordinate], rng: Optional[np.random.Generator] = None):
        rng = rng if rng is not None else get_rng()
        self.points: List[Coordinate] = list(points)
        # Generator.shuffle is an in-place Fisher-Yates shuffle
        rng.shuffle(self.points)
        self._first_read = False

    def __len__(self) -> int:
        return len(self.points)

    def next_point(self) -> Optional[Coordinate]:
        if not self.points:
            return None

        if not self._first_read:
            self._first_read = True
            return self.points[0]

        return self.points.pop()
