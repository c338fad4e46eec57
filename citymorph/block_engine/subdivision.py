"""
Recursive block subdivision.

The site boundary is cut by the primary roads and the resulting blocks
are split again and again in two passes (coarse, then fine) until every
block fits its area budget.  The budget of a block grows when it lies
far from the primary roads and shrinks when it lies close to them.

Each pass repeats two sub-steps over a snapshot of the current blocks:

  * shape correction: blocks with a long/short edge ratio above the
    trigger are cut once across their longest edge;
  * area correction: blocks over budget are cut by a pair of crossing
    lines (quadrilaterals) or by lines radiating from a point near the
    centroid (any other polygon).

All randomness comes from the ``random.Random`` handed in by the caller.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

from shapely.errors import ShapelyError
from shapely.geometry import LineString, Point, Polygon

from .. import config
from .block_model import Block, Division
from .edges import EdgeRelation
from .geometry import (
    as_segments,
    distance_to_segments,
    extend_line,
    point_at,
    segment_intersection,
    split_polygon,
)
from .params import ConfigurationError, PassParams, SubdivisionParams, validate_tolerance

logger = logging.getLogger(__name__)


@dataclass
class SubdivisionResult:
    blocks: List[Block]
    split_lines_coarse: List[LineString]
    split_lines_fine: List[LineString]
    converged: bool = True
    diagnostics: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Area budget
# ---------------------------------------------------------------------------

def proximity_factor(block: Block, road_segments: Sequence[LineString],
                     distance_cutoff: float, amplification: float) -> float:
    """``1 + amplification`` for blocks far from the roads, else ``1 - amplification``."""
    if distance_to_segments(block.centroid, road_segments) > distance_cutoff:
        return 1 + amplification
    return 1 - amplification


def over_budget(block: Block, road_segments: Sequence[LineString], params: PassParams) -> bool:
    factor = proximity_factor(block, road_segments, params.distance_cutoff, params.amplification)
    return block.area > params.threshold * factor


def needs_division(blocks: Sequence[Block], road_segments: Sequence[LineString],
                   params: PassParams) -> bool:
    """True while any block is over its proximity-weighted budget."""
    return any(over_budget(b, road_segments, params) for b in blocks)


# ---------------------------------------------------------------------------
# Division lines
# ---------------------------------------------------------------------------

def _jittered(rng: random.Random, jitter: float) -> float:
    return rng.uniform(0.5 - jitter, 0.5 + jitter)


def _connect(rng, jitter, edge_a: LineString, edge_b: LineString) -> LineString:
    return LineString([
        point_at(edge_a, _jittered(rng, jitter)),
        point_at(edge_b, _jittered(rng, jitter)),
    ])


def division_at_longest(block: Block, rng: random.Random, jitter: float,
                        tolerance: float) -> List[LineString]:
    """
    One line from near the middle of the longest edge to near the middle
    of the first edge not touching it.  Empty if there is no such edge.
    """
    edges = block.edges
    relation = EdgeRelation(edges, tolerance)
    longest = relation.longest()
    across = relation.across(longest)
    if across is None:
        return []
    return [_connect(rng, jitter, edges[longest], edges[across])]


def division_by_pairs(block: Block, rng: random.Random, jitter: float,
                      tolerance: float) -> List[LineString]:
    """Two lines joining the opposite edge pairs of a quadrilateral."""
    edges = block.edges
    pairs = EdgeRelation(edges, tolerance).opposite_pairs()
    if pairs is None:
        return []
    return [_connect(rng, jitter, edges[a], edges[b]) for a, b in pairs]


def division_by_pairs_eliminated(block: Block, rng: random.Random, jitter: float,
                                 tolerance: float) -> List[LineString]:
    """
    Pair division of a quadrilateral with the narrow end removed.

    The two pair lines cross; the one whose longer half is longer keeps
    only its shorter half, the other is kept whole.
    """
    edges = block.edges
    pairs = EdgeRelation(edges, tolerance).opposite_pairs()
    if pairs is None:
        return []
    points = [point_at(e, _jittered(rng, jitter)) for e in edges]
    (a0, a1), (b0, b1) = pairs
    first = LineString([points[a0], points[a1]])
    second = LineString([points[b0], points[b1]])

    params = segment_intersection(first, second)
    if params is None:
        return [first, second]
    dv1 = Division(first, params[0])
    dv2 = Division(second, params[1])
    if dv1.max_segment_length > dv2.max_segment_length:
        trimmed, whole = dv1.min_segment, second
    else:
        trimmed, whole = dv2.min_segment, first
    # Push the trimmed end through the whole line so the two are noded.
    return [extend_line(trimmed, tolerance, 0.0), whole]


def _division_center(block: Block, rng: random.Random, radius: float,
                     tolerance: float) -> Point:
    c = block.centroid
    inner = block.polygon.buffer(-tolerance)
    for _ in range(config.CENTER_SAMPLE_ATTEMPTS):
        candidate = Point(c.x + rng.uniform(-radius, radius),
                          c.y + rng.uniform(-radius, radius))
        if inner.contains(candidate):
            return candidate
    if inner.contains(c):
        return c
    return block.polygon.representative_point()


def division_from_center(block: Block, rng: random.Random, radius: float,
                         jitter: float, tolerance: float) -> List[LineString]:
    """Lines from a random point near the centroid to every edge."""
    center = _division_center(block, rng, radius, tolerance)
    origin = (center.x, center.y)
    return [
        LineString([origin, point_at(edge, _jittered(rng, jitter))])
        for edge in block.edges
    ]


def area_division(block: Block, road_segments: Sequence[LineString],
                  pass_params: PassParams, rng: random.Random, jitter: float,
                  tolerance: float) -> List[LineString]:
    """Pick the division used by the area sub-step for *block*."""
    if block.edge_count == 4:
        far = proximity_factor(block, road_segments, pass_params.distance_cutoff,
                               pass_params.amplification) >= 1
        if pass_params.eliminate_narrow_end and far:
            lines = division_by_pairs_eliminated(block, rng, jitter, tolerance)
        else:
            lines = division_by_pairs(block, rng, jitter, tolerance)
        if lines:
            return lines
    return division_from_center(block, rng, pass_params.containment_radius, jitter, tolerance)


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------

def execute_division(block: Block, division: Sequence[LineString],
                     tolerance: float) -> List[Block]:
    """Split *block* by *division*; degenerate fragments are dropped."""
    fragments = split_polygon(block.polygon, division, tolerance)
    blocks = []
    for fragment in fragments:
        child = Block.from_polygon(fragment, tolerance)
        if child is not None:
            blocks.append(child)
    return blocks


def _divide(block: Block, division: Sequence[LineString], tolerance: float,
            diagnostics: List[str]) -> List[Block]:
    if not division:
        return [block]
    try:
        children = execute_division(block, division, tolerance)
    except ShapelyError as exc:
        msg = f"split failed for {block!r}: {exc}"
        logger.warning(msg)
        diagnostics.append(msg)
        return [block]
    if not children:
        msg = f"split of {block!r} left no valid fragment; block kept"
        logger.debug(msg)
        diagnostics.append(msg)
        return [block]
    return children


def _run_pass(blocks: List[Block], road_segments: Sequence[LineString],
              pass_params: PassParams, params: SubdivisionParams,
              rng: random.Random, tolerance: float, label: str,
              diagnostics: List[str]) -> Tuple[List[Block], List[LineString], bool]:
    lines: List[LineString] = []
    iteration = 0
    stalled = 0

    while needs_division(blocks, road_segments, pass_params):
        if iteration >= params.max_iterations:
            msg = f"{label} pass stopped after {iteration} iterations without converging"
            logger.warning(msg)
            diagnostics.append(msg)
            return blocks, lines, False
        iteration += 1
        before = len(blocks)

        # -- shape correction --
        snapshot = tuple(blocks)
        blocks = []
        for block in snapshot:
            if block.length_ratio() >= params.length_ratio:
                division = division_at_longest(block, rng, params.jitter, tolerance)
                lines.extend(division)
                blocks.extend(_divide(block, division, tolerance, diagnostics))
            else:
                blocks.append(block)

        # -- area correction --
        if needs_division(blocks, road_segments, pass_params):
            snapshot = tuple(blocks)
            blocks = []
            for block in snapshot:
                if over_budget(block, road_segments, pass_params):
                    division = area_division(block, road_segments, pass_params,
                                             rng, params.jitter, tolerance)
                    lines.extend(division)
                    blocks.extend(_divide(block, division, tolerance, diagnostics))
                else:
                    blocks.append(block)

        if len(blocks) > before:
            stalled = 0
            continue
        # every split failed; retry with fresh draws a few times
        stalled += 1
        if stalled >= config.MAX_STALLED_ITERATIONS:
            msg = f"{label} pass made no progress in {stalled} iterations, stopped at {iteration}"
            logger.warning(msg)
            diagnostics.append(msg)
            return blocks, lines, False

    logger.debug(f"{label} pass finished after {iteration} iterations, {len(blocks)} blocks")
    return blocks, lines, True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def subdivide(
    boundary: Polygon,
    primary_roads: Sequence,
    coarse: PassParams,
    fine: PassParams,
    seed: Union[int, random.Random, None] = None,
    length_ratio: float = 3.0,
    jitter: float = 0.1,
    tolerance: float = config.TOLERANCE,
    max_iterations: int = config.MAX_PASS_ITERATIONS,
) -> SubdivisionResult:
    """
    Subdivide a site boundary into blocks.

    Parameters
    ----------
    boundary : Polygon
        Site boundary.
    primary_roads : list[LineString]
        Primary road curves; they cut the boundary first and drive the
        proximity factor of every block.
    coarse, fine : PassParams
        Area budgets of the two passes.
    seed : int or random.Random, optional
        Seed, or an already seeded generator.
    length_ratio : float
        Longest/shortest edge ratio that triggers shape correction.
    jitter : float
        Split points are drawn from ``U(0.5 - jitter, 0.5 + jitter)``
        along their edge.
    tolerance : float
        Geometric tolerance for every primitive call.
    max_iterations : int
        Iteration cap of each pass.

    Returns
    -------
    SubdivisionResult
    """
    params = SubdivisionParams(coarse=coarse, fine=fine, length_ratio=length_ratio,
                               jitter=jitter, max_iterations=max_iterations)
    return subdivide_with(boundary, primary_roads, params, seed, tolerance)


def subdivide_with(boundary: Polygon, primary_roads: Sequence, params: SubdivisionParams,
                   seed: Union[int, random.Random, None] = None,
                   tolerance: float = config.TOLERANCE) -> SubdivisionResult:
    """:func:`subdivide` taking a :class:`SubdivisionParams` bundle."""
    params.validate()
    validate_tolerance(tolerance)
    site = Block.from_polygon(boundary, tolerance)
    if site is None:
        raise ConfigurationError("boundary polygon is empty or degenerate")
    road_segments = as_segments(primary_roads)
    if not road_segments:
        raise ConfigurationError("at least one primary road is required")

    rng = seed if isinstance(seed, random.Random) else random.Random(seed)
    diagnostics: List[str] = []

    blocks = _divide(site, list(primary_roads), tolerance, diagnostics)
    logger.info(f"Primary roads cut the site into {len(blocks)} blocks")

    blocks, coarse_lines, coarse_ok = _run_pass(
        blocks, road_segments, params.coarse, params, rng, tolerance, "coarse", diagnostics)
    blocks, fine_lines, fine_ok = _run_pass(
        blocks, road_segments, params.fine, params, rng, tolerance, "fine", diagnostics)

    logger.info(
        f"Subdivision: {len(blocks)} blocks, {len(coarse_lines)} coarse lines, "
        f"{len(fine_lines)} fine lines"
    )
    return SubdivisionResult(
        blocks=blocks,
        split_lines_coarse=coarse_lines,
        split_lines_fine=fine_lines,
        converged=coarse_ok and fine_ok,
        diagnostics=diagnostics,
    )
