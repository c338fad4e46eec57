"""
Block, road and building models using Shapely geometry.

A Block wraps one planar polygon under subdivision; area and centroid
are always computed from the current polygon.  Buildings are the grid
cells of a block together with the borders and volumes derived from
them.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point, Polygon

from .geometry import (
    as_segments,
    distance_to_segments,
    normalize_polygon,
    polygon_edges,
)


@dataclass
class Block:
    """A planar polygon region under subdivision."""

    polygon: Polygon

    @staticmethod
    def from_polygon(polygon, tolerance: float) -> Optional["Block"]:
        """Clean *polygon* and wrap it; ``None`` if it is degenerate."""
        cleaned = normalize_polygon(polygon, tolerance)
        if cleaned is None:
            return None
        return Block(cleaned)

    @property
    def area(self) -> float:
        return self.polygon.area

    @property
    def centroid(self) -> Point:
        return self.polygon.centroid

    @property
    def edges(self) -> List[LineString]:
        return polygon_edges(self.polygon)

    @property
    def edge_lengths(self) -> List[float]:
        return [e.length for e in self.edges]

    @property
    def edge_count(self) -> int:
        return len(self.polygon.exterior.coords) - 1

    def length_ratio(self) -> float:
        """Longest edge length over shortest edge length."""
        lengths = self.edge_lengths
        shortest = min(lengths)
        if shortest <= 0:
            return math.inf
        return max(lengths) / shortest

    def to_dict(self) -> dict:
        c = self.centroid
        return {
            "polygon": [list(p) for p in self.polygon.exterior.coords],
            "area": round(self.area, 4),
            "centroid": [round(c.x, 4), round(c.y, 4)],
        }

    def __repr__(self) -> str:
        return f"Block(edges={self.edge_count}, area={self.area:.2f})"


@dataclass
class RoadClass:
    """
    One class of roads with its distance bands.

    ``thresholds`` increase strictly; ``heights[i]`` applies to distances
    in ``(thresholds[i-1], thresholds[i]]`` (the first band starts at 0).
    Beyond the last threshold the class contributes nothing.
    """

    name: str
    curves: Sequence = ()
    thresholds: Sequence[float] = ()
    heights: Sequence[float] = ()
    active: bool = True
    segments: List[LineString] = field(init=False, repr=False)

    def __post_init__(self):
        self.segments = as_segments(self.curves)

    def min_distance(self, point: Point) -> float:
        return distance_to_segments(point, self.segments)

    def band_height(self, distance: float) -> float:
        for threshold, height in zip(self.thresholds, self.heights):
            if distance <= threshold:
                return height
        return 0.0


@dataclass
class Division:
    """
    A split line crossed by another split line at parameter ``t``.

    The crossing cuts the line in two; the longer half lies towards the
    narrow end of the block and is the one eliminated.
    """

    line: LineString
    t: float

    def _halves(self) -> Tuple[LineString, LineString]:
        (x0, y0), (x1, y1) = self.line.coords[0], self.line.coords[-1]
        cross = (x0 + (x1 - x0) * self.t, y0 + (y1 - y0) * self.t)
        return LineString([cross, (x0, y0)]), LineString([cross, (x1, y1)])

    @property
    def max_segment_length(self) -> float:
        return max(h.length for h in self._halves())

    @property
    def min_segment(self) -> LineString:
        first, second = self._halves()
        return second if first.length > second.length else first


class Tier(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


@dataclass
class Volume:
    """A vertical extrusion of a planar footprint."""

    footprint: Polygon
    height: float
    base_z: float = 0.0

    @property
    def top_z(self) -> float:
        return self.base_z + self.height

    @property
    def volume(self) -> float:
        return self.footprint.area * self.height

    def to_mesh(self):
        """Extruded solid as a ``trimesh.Trimesh``."""
        from ..model3d import extrude_volume
        return extrude_volume(self)

    def to_dict(self) -> dict:
        return {
            "footprint": [list(p) for p in self.footprint.exterior.coords],
            "holes": [[list(p) for p in r.coords] for r in self.footprint.interiors],
            "base_z": self.base_z,
            "height": self.height,
        }


@dataclass
class Building:
    """One grid cell of a block and everything generated from it."""

    outline: Polygon
    far: float
    block_index: int = 0
    tier: Optional[Tier] = None
    outer_border: Optional[Polygon] = None
    inner_border: Optional[Polygon] = None
    primary_edges: List[LineString] = field(default_factory=list)
    secondary_edges: List[LineString] = field(default_factory=list)
    primary_tower_base: Optional[Polygon] = None
    secondary_tower_base: Optional[Polygon] = None
    structure: Optional[Volume] = None
    primary_tower: Optional[Volume] = None
    secondary_tower: Optional[Volume] = None

    @property
    def centroid(self) -> Point:
        return self.outline.centroid

    @property
    def area(self) -> float:
        return self.outline.area

    def offset_max(self) -> float:
        """Shortest distance from the centroid to an outline edge."""
        c = self.centroid
        return min(e.distance(c) for e in polygon_edges(self.outline))

    def to_dict(self) -> dict:
        return {
            "block_index": self.block_index,
            "far": self.far,
            "tier": self.tier.value if self.tier else None,
            "outline": [list(p) for p in self.outline.exterior.coords],
            "yard": (
                [list(p) for p in self.inner_border.exterior.coords]
                if self.inner_border is not None else None
            ),
            "structure": self.structure.to_dict() if self.structure else None,
            "primary_tower": self.primary_tower.to_dict() if self.primary_tower else None,
            "secondary_tower": self.secondary_tower.to_dict() if self.secondary_tower else None,
        }
