"""
FAR-driven building massing.

A block is cut into a grid of footprints whose resolution follows its
floor-area ratio.  Each footprint is then built according to its tier:

  * low  [0.5, 2): a single inset volume;
  * mid  [2, 5): a perimeter ring around a courtyard;
  * high [5, 20]: a five-floor perimeter podium plus towers on the
    sides facing primary and secondary roads, sized to absorb the FAR
    the podium does not use.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely.errors import ShapelyError
from shapely.geometry import LineString, Polygon

from .. import config
from .block_model import Building, Tier, Volume
from .geometry import (
    as_segments,
    distance_to_segments,
    extend_line,
    join_lines,
    largest_polygon,
    normalize_polygon,
    offset_ring,
    offset_toward,
    polygon_edges,
    split_polygon,
)
from .params import ConfigurationError, MassingParams, validate_tolerance

logger = logging.getLogger(__name__)


@dataclass
class MassingResult:
    buildings: List[Building] = field(default_factory=list)
    footprints: List[Polygon] = field(default_factory=list)
    volumes: List[Volume] = field(default_factory=list)
    yards: List[Polygon] = field(default_factory=list)
    tower_volumes: List[Volume] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Tiers and grid
# ---------------------------------------------------------------------------

def classify_tier(far: float) -> Optional[Tier]:
    """Tier for *far*; each lower bound belongs to the upper tier."""
    if config.FAR_LOW <= far < config.FAR_MID:
        return Tier.LOW
    if config.FAR_MID <= far < config.FAR_HIGH:
        return Tier.MID
    if config.FAR_HIGH <= far <= config.FAR_MAX:
        return Tier.HIGH
    return None


def grid_spans(far: float) -> Tuple[int, int]:
    """Cell counts ``(U, V)`` along the two directions of a block."""
    return int(math.floor(1 / far + 1)), int(math.floor(5 / far + 1))


def _bilinear(corners: np.ndarray, u_count: int, v_count: int) -> np.ndarray:
    """Grid points of the bilinear patch spanned by four corners."""
    u = np.linspace(0.0, 1.0, u_count + 1)[None, :, None]
    v = np.linspace(0.0, 1.0, v_count + 1)[:, None, None]
    p0, p1, p2, p3 = corners
    return ((1 - u) * (1 - v) * p0 + u * (1 - v) * p1
            + u * v * p2 + (1 - u) * v * p3)


def grid_footprints(polygon: Polygon, u_count: int, v_count: int,
                    tolerance: float) -> List[Polygon]:
    """
    Sample a block on a ``u_count`` x ``v_count`` grid.

    Quadrilaterals are sampled as a bilinear patch of their corners.  Any
    other shape is sampled on its minimum rotated rectangle and every cell
    is clipped back to the block.
    """
    coords = list(polygon.exterior.coords)[:-1]
    clip = len(coords) != 4
    if clip:
        coords = list(polygon.minimum_rotated_rectangle.exterior.coords)[:-1]
    pts = _bilinear(np.array(coords[:4], dtype=float), u_count, v_count)

    cells = []
    for i in range(v_count):
        for j in range(u_count):
            corners = (pts[i, j], pts[i, j + 1], pts[i + 1, j + 1], pts[i + 1, j])
            cell = Polygon([tuple(p) for p in corners])
            if clip:
                cell = largest_polygon(cell.intersection(polygon))
            cell = normalize_polygon(cell, tolerance)
            if cell is not None:
                cells.append(cell)
    return cells


# ---------------------------------------------------------------------------
# Per-tier generators
# ---------------------------------------------------------------------------

def _floors_volume(footprint: Polygon, floors: float, base_z: float = 0.0) -> Volume:
    return Volume(footprint=footprint, height=floors * config.FLOOR_HEIGHT, base_z=base_z)


def generate_low(building: Building, density: float, tolerance: float) -> bool:
    off = (1 - density) * building.offset_max()
    inset = offset_ring(building.outline, -off, tolerance) if off > 0 else building.outline
    if inset is None:
        return False
    floors = math.floor(building.far / density)
    if floors >= 1 and off < building.outline.length / 20:
        building.structure = _floors_volume(inset, floors)
    else:
        building.structure = _floors_volume(inset, 1)
    building.outer_border = inset
    return True


def _borders(building: Building, density: float,
             tolerance: float) -> Tuple[Optional[Polygon], Optional[Polygon]]:
    outer = offset_ring(building.outline, -config.OUTER_BORDER, tolerance)
    if outer is None:
        return None, None
    off = density * (building.offset_max() - config.OUTER_BORDER)
    inner = offset_ring(outer, -off, tolerance) if off > 0 else None
    return outer, inner


def _ring(outer: Polygon, inner: Optional[Polygon], tolerance: float) -> Polygon:
    if inner is None:
        return outer
    ring = largest_polygon(outer.difference(inner))
    if ring is None or ring.area <= tolerance:
        return outer
    return ring


def generate_perimeter(building: Building, density: float, floors: float,
                       tolerance: float) -> bool:
    """Ring between outer and inner border, extruded *floors* high."""
    outer, inner = _borders(building, density, tolerance)
    if outer is None:
        return False
    building.outer_border = outer
    building.inner_border = inner
    building.structure = _floors_volume(_ring(outer, inner, tolerance), floors)
    return True


def generate_mid(building: Building, density: float, tolerance: float) -> bool:
    return generate_perimeter(building, density, math.floor(building.far / density), tolerance)


def road_facing_edges(outline: Polygon, primary_segments: Sequence[LineString],
                      secondary_segments: Sequence[LineString]):
    """Split outline edges into primary-facing and secondary-facing groups."""
    primary, secondary = [], []
    for edge in polygon_edges(outline):
        mid = edge.interpolate(0.5, normalized=True)
        if distance_to_segments(mid, primary_segments) < config.PRIMARY_ADJACENCY:
            primary.append(edge)
        elif distance_to_segments(mid, secondary_segments) < config.SECONDARY_ADJACENCY:
            secondary.append(edge)
    return primary, secondary


def tower_base(building: Building, edges: Sequence[LineString], density: float,
               tolerance: float) -> Optional[Polygon]:
    """
    Cut a tower base off the outer border along a group of road edges.

    The joined edges are pulled in towards the centroid, extended and used
    to split the outer border; the smaller piece is the base.  Any
    degenerate step yields ``None``.
    """
    if not edges or building.outer_border is None:
        return None
    joined = join_lines(edges, tolerance)
    if joined is None:
        return None
    off = density * (building.offset_max() - config.OUTER_BORDER)
    shifted = offset_toward(joined, off, building.centroid)
    if shifted is None or shifted.is_empty or shifted.length <= tolerance:
        return None
    cutter = extend_line(shifted, config.TOWER_EXTENSION)
    pieces = split_polygon(building.outer_border, [cutter], tolerance)
    if len(pieces) < 2:
        return None
    return normalize_polygon(min(pieces, key=lambda p: p.area), tolerance)


def generate_towers(building: Building, tower_ratio: float):
    """Extrude tower bases with the FAR left over by the podium."""
    block_area = building.outline.area
    base_far = building.structure.footprint.area / block_area * config.HIGH_TIER_BASE_FLOORS
    residual = max(0.0, (building.far - base_far) * block_area)
    if residual <= 0:
        return
    base_z = config.HIGH_TIER_BASE_FLOORS * config.FLOOR_HEIGHT
    if building.primary_tower_base is not None:
        floors = math.floor(residual * tower_ratio / building.primary_tower_base.area)
        # one extra floor of clearance on top
        building.primary_tower = _floors_volume(building.primary_tower_base, floors + 1, base_z)
    if building.secondary_tower_base is not None:
        floors = math.floor(residual * (1 - tower_ratio) / building.secondary_tower_base.area)
        building.secondary_tower = _floors_volume(building.secondary_tower_base, floors + 1, base_z)


def generate_high(building: Building, density: float, primary_segments, secondary_segments,
                  tower_ratio: float, tolerance: float) -> bool:
    if not generate_perimeter(building, density, config.HIGH_TIER_BASE_FLOORS, tolerance):
        return False
    building.primary_edges, building.secondary_edges = road_facing_edges(
        building.outline, primary_segments, secondary_segments)
    building.primary_tower_base = tower_base(building, building.primary_edges, density, tolerance)
    building.secondary_tower_base = tower_base(building, building.secondary_edges, density, tolerance)
    generate_towers(building, tower_ratio)
    return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_footprint(building: Building, params: MassingParams, primary_segments,
                    secondary_segments, tolerance: float) -> bool:
    """Dispatch *building* to its tier generator.  False if nothing was built."""
    low, mid, high = params.setback_ratios
    if building.tier is Tier.LOW:
        return generate_low(building, low, tolerance)
    if building.tier is Tier.MID:
        return generate_mid(building, mid, tolerance)
    if building.tier is Tier.HIGH:
        return generate_high(building, high, primary_segments, secondary_segments,
                             params.tower_ratio, tolerance)
    return False


def generate(
    blocks: Sequence,
    fars: Sequence[float],
    setback_ratios: Sequence[float],
    primary_roads: Sequence,
    secondary_roads: Sequence,
    tower_ratio: float,
    tolerance: float = config.TOLERANCE,
) -> MassingResult:
    """
    Generate footprints, volumes, yards and towers for every block.

    Parameters
    ----------
    blocks : list[Block or Polygon]
        Block surfaces.
    fars : list[float]
        Target FAR per block (same order as *blocks*).
    setback_ratios : (float, float, float)
        Density ratio of the low, mid and high tier.
    primary_roads, secondary_roads : list[LineString]
        Roads that attract towers on high-tier footprints.
    tower_ratio : float
        Share of the residual floor area given to the primary tower.

    Returns
    -------
    MassingResult
        Every output list follows block order; each Building records the
        index of the block it came from.
    """
    params = MassingParams(setback_ratios=tuple(setback_ratios), tower_ratio=tower_ratio)
    params.validate()
    validate_tolerance(tolerance)
    if len(fars) != len(blocks):
        raise ConfigurationError("one FAR value per block is required")
    if any(not far > 0 for far in fars):
        raise ConfigurationError("FAR values must be positive")

    primary_segments = as_segments(primary_roads)
    secondary_segments = as_segments(secondary_roads)
    result = MassingResult()

    for index, (block, far) in enumerate(zip(blocks, fars)):
        polygon = getattr(block, "polygon", block)
        tier = classify_tier(far)
        u_count, v_count = grid_spans(far)
        try:
            cells = grid_footprints(polygon, u_count, v_count, tolerance)
        except ShapelyError as exc:
            msg = f"grid of block {index} failed: {exc}"
            logger.warning(msg)
            result.diagnostics.append(msg)
            continue
        if tier is None:
            result.diagnostics.append(f"block {index}: FAR {far} is outside every tier")

        for cell in cells:
            building = Building(outline=cell, far=far, block_index=index, tier=tier)
            try:
                built = build_footprint(building, params, primary_segments,
                                        secondary_segments, tolerance)
            except ShapelyError as exc:
                msg = f"footprint of block {index} failed: {exc}"
                logger.warning(msg)
                result.diagnostics.append(msg)
                continue
            if tier is not None and not built:
                result.diagnostics.append(f"block {index}: footprint too small for its {tier.value} tier")
            _collect(result, building)

    logger.info(
        f"Massing: {len(result.footprints)} footprints, {len(result.volumes)} volumes, "
        f"{len(result.tower_volumes)} towers"
    )
    return result


def _collect(result: MassingResult, building: Building):
    result.buildings.append(building)
    result.footprints.append(building.outline)
    if building.structure is not None:
        result.volumes.append(building.structure)
    if building.inner_border is not None:
        result.yards.append(building.inner_border)
    for tower in (building.primary_tower, building.secondary_tower):
        if tower is not None:
            result.tower_volumes.append(tower)
