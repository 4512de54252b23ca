"""
Adapters for the external services used during generation.
"""

from .streetview import StreetViewLookup
from .shapes import ShapeFetcher, ShapeCatalog, region_from_geojson
from .routes import fetch_route, parse_kml_points

__all__ = ['StreetViewLookup', 'ShapeFetcher', 'ShapeCatalog', 'region_from_geojson',
           'fetch_route', 'parse_kml_points']
