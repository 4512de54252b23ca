"""
Core round generation functionality.
"""

from .types import Coordinate, Round, Region, ShapeOptions
from .geodesy import (haversine_distance_km, destination_point, center_point,
                      score_from_distance_km, score, random_global_point)
from .panorama import PanoramaQuery, PanoramaLocator, JumpResult, jump_attempt_plan
from .sampler import RegionPointSampler
from .regions import PolygonRegion, ShapeCache
from .route_source import RoutePointSource
from .round_generator import RoundGenerator, GenerationState, CancellationToken

__all__ = ['Coordinate', 'Round', 'Region', 'ShapeOptions',
           'haversine_distance_km', 'destination_point', 'center_point',
           'score_from_distance_km', 'score', 'random_global_point',
           'PanoramaQuery', 'PanoramaLocator', 'JumpResult', 'jump_attempt_plan',
           'RegionPointSampler', 'PolygonRegion', 'ShapeCache', 'RoutePointSource',
           'RoundGenerator', 'GenerationState', 'CancellationToken']
