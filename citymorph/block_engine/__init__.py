"""
Block Engine for urban layout generation.

Recursive subdivision of a site into blocks, road setbacks, distance-band
density classification and FAR-tiered building massing.  All geometry
uses Shapely polygons.
"""

from .generator import UrbanGenerator
from .params import ConfigurationError

__all__ = ["UrbanGenerator", "ConfigurationError"]
