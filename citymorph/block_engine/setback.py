"""
Road setbacks and pedestrian outlines.

Every block edge is matched against the road classes it lies on.  The
edge is offset on both sides by the class half-width plus the
pedestrian offset; these lines and the site boundary's own offsets cut
the block, and the largest piece becomes the building line.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from shapely.errors import ShapelyError
from shapely.geometry import LineString, Point, Polygon

from .. import config
from .block_model import Block
from .geometry import (
    as_segments,
    extend_line,
    offset_ring,
    offset_segment,
    split_polygon,
)
from .params import ConfigurationError, SetbackParams, validate_tolerance

logger = logging.getLogger(__name__)

CLASS_A = "A"
CLASS_B = "B"
CLASS_OTHER = "other"


@dataclass
class SetbackResult:
    blocks: List[Block]
    pedestrian_outlines: List[Optional[Polygon]]
    diagnostics: List[str] = field(default_factory=list)


def edge_on_road(edge: LineString, road_segments: Sequence[LineString],
                 tolerance: float) -> bool:
    """True if both endpoints of *edge* lie on one road segment."""
    start, end = Point(edge.coords[0]), Point(edge.coords[-1])
    for rd in road_segments:
        if rd.distance(start) < tolerance and rd.distance(end) < tolerance:
            return True
    return False


def classify_edge(edge: LineString, segments_a, segments_b, tolerance: float) -> str:
    if edge_on_road(edge, segments_a, tolerance):
        return CLASS_A
    if edge_on_road(edge, segments_b, tolerance):
        return CLASS_B
    return CLASS_OTHER


def edge_cutters(block: Block, segments_a, segments_b, params: SetbackParams,
                 tolerance: float) -> List[LineString]:
    """Both offset lines of every edge, extended past the block."""
    widths = {
        CLASS_A: params.width_a,
        CLASS_B: params.width_b,
        CLASS_OTHER: params.width_other,
    }
    cutters = []
    for edge in block.edges:
        w = widths[classify_edge(edge, segments_a, segments_b, tolerance)] + params.pedestrian_offset
        if w <= 0:
            continue
        for d in (w, -w):
            shifted = offset_segment(edge, d)
            if shifted is not None:
                cutters.append(extend_line(shifted, config.SETBACK_EXTENSION))
    return cutters


def boundary_cutters(boundary: Polygon, width: float, tolerance: float):
    """Outward and inward offsets of the site boundary."""
    rings = []
    if width <= 0:
        return rings
    for d in (width, -width):
        offset = offset_ring(boundary, d, tolerance)
        if offset is not None:
            rings.append(offset.exterior)
    return rings


def largest_fragment(block: Block, cutters, tolerance: float) -> Optional[Block]:
    """Split *block* by *cutters* and keep the piece with the largest area."""
    fragments = split_polygon(block.polygon, cutters, tolerance)
    if not fragments:
        return None
    return Block.from_polygon(max(fragments, key=lambda f: f.area), tolerance)


def pedestrian_outline(block: Block, offset: float, tolerance: float) -> Optional[Polygon]:
    """Block outline offset inward by *offset*; ``None`` if it collapses."""
    if offset == 0:
        return block.polygon
    return offset_ring(block.polygon, -offset, tolerance)


def apply_setbacks(
    blocks: Sequence[Block],
    road_class_a: Sequence,
    road_class_b: Sequence,
    boundary: Polygon,
    width_a: float,
    width_b: float,
    width_other: float,
    pedestrian_offset: float,
    tolerance: float = config.TOLERANCE,
) -> SetbackResult:
    """
    Cut every block back from its roads and derive pedestrian outlines.

    Returns blocks and outlines in input order.  A block whose split
    fails is left out of both lists and noted in ``diagnostics``; a
    collapsed pedestrian outline is reported as ``None``.
    """
    params = SetbackParams(width_a, width_b, width_other, pedestrian_offset)
    params.validate()
    validate_tolerance(tolerance)
    if boundary is None or boundary.is_empty:
        raise ConfigurationError("boundary polygon is empty")

    segments_a = as_segments(road_class_a)
    segments_b = as_segments(road_class_b)
    site_cutters = boundary_cutters(boundary, width_a, tolerance)

    result = SetbackResult(blocks=[], pedestrian_outlines=[])
    for index, block in enumerate(blocks):
        try:
            cutters = edge_cutters(block, segments_a, segments_b, params, tolerance)
            kept = largest_fragment(block, cutters + site_cutters, tolerance)
        except ShapelyError as exc:
            msg = f"setback of block {index} failed: {exc}"
            logger.warning(msg)
            result.diagnostics.append(msg)
            continue
        if kept is None:
            msg = f"setback of block {index} left no valid fragment"
            logger.warning(msg)
            result.diagnostics.append(msg)
            continue

        outline = pedestrian_outline(kept, pedestrian_offset, tolerance)
        if outline is None:
            result.diagnostics.append(f"pedestrian outline of block {index} collapsed")
        result.blocks.append(kept)
        result.pedestrian_outlines.append(outline)

    logger.info(f"Setbacks applied to {len(result.blocks)} of {len(blocks)} blocks")
    return result
