"""Value types shared by the sampling pipeline."""

from dataclasses import dataclass
from typing import Dict, Protocol, runtime_checkable


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 position in degrees."""

    lat: float
    lng: float

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude {self.lat} out of range [-90, 90]")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude {self.lng} out of range [-180, 180]")

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Round:
    """One game location."""

    index: int
    map_position: Coordinate

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {"map_position": self.map_position.to_dict()}


@dataclass(frozen=True)
class ShapeOptions:
    """Where a named shape can be downloaded from."""

    relative_path: str


@runtime_checkable
class Region(Protocol):
    """
    A named area that can be sampled.

    Implementations are supplied by the shape subsystem; the sampler only
    relies on these three methods.
    """

    def name(self) -> str:
        ...

    def area(self) -> float:
        """Area in square meters."""
        ...

    def random_point_within(self) -> Coordinate:
        ...
