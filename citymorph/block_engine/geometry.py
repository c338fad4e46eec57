"""
Planar geometry services used by the block engine.

Thin wrappers over Shapely: polygon splitting by a set of cutter lines,
edge/ring offsets with sharp corners, line extension, line joining and
point-to-segment distances.  Every call receives the tolerance explicitly.
"""

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import LineString, MultiLineString, Point, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import linemerge, polygonize, unary_union

Coord = Tuple[float, float]


# ---------------------------------------------------------------------------
# Polygons
# ---------------------------------------------------------------------------

def normalize_polygon(polygon, tolerance: float) -> Optional[Polygon]:
    """
    Clean a polygon for use as a block or footprint.

    Repairs invalid input, keeps the largest part of a multi-part result,
    drops collinear vertices and orients the exterior counter-clockwise.
    Returns ``None`` when nothing with area above *tolerance* is left.
    """
    if polygon is None or polygon.is_empty:
        return None
    if not polygon.is_valid:
        polygon = polygon.buffer(0)
    polygon = largest_polygon(polygon)
    if polygon is None:
        return None
    polygon = polygon.simplify(tolerance, preserve_topology=True)
    polygon = largest_polygon(polygon)
    if polygon is None or polygon.area <= tolerance:
        return None
    return orient(polygon, sign=1.0)


def largest_polygon(geom) -> Optional[Polygon]:
    """Return *geom* if it is a polygon, or its largest polygon part."""
    if geom is None or geom.is_empty:
        return None
    if geom.geom_type == "Polygon":
        return geom
    parts = [g for g in getattr(geom, "geoms", []) if g.geom_type == "Polygon"]
    if not parts:
        return None
    return max(parts, key=lambda g: g.area)


def polygon_edges(polygon: Polygon) -> List[LineString]:
    """Ordered exterior edges of *polygon* as two-point LineStrings."""
    coords = list(polygon.exterior.coords)
    return [LineString([coords[i], coords[i + 1]]) for i in range(len(coords) - 1)]


def split_polygon(polygon: Polygon, cutters: Iterable, tolerance: float) -> List[Polygon]:
    """
    Split *polygon* by every line in *cutters*.

    Cutter endpoints lying on or outside the boundary are pushed out by
    *tolerance* so that they cross it; endpoints well inside the polygon
    are left where they are, so lines meeting at a shared interior point
    stay noded at that point.  Faces below *tolerance* are discarded.
    """
    lines = []
    inner = polygon.buffer(-tolerance)
    for cutter in cutters:
        if cutter is None or cutter.is_empty:
            continue
        if cutter.geom_type == "LinearRing":
            lines.append(LineString(cutter.coords))
            continue
        for part in getattr(cutter, "geoms", [cutter]):
            start = Point(part.coords[0])
            end = Point(part.coords[-1])
            lines.append(extend_line(
                part,
                0.0 if inner.contains(start) else tolerance,
                0.0 if inner.contains(end) else tolerance,
            ))
    if not lines:
        return [polygon]

    noded = unary_union([polygon.exterior] + [r for r in polygon.interiors] + lines)
    faces = []
    for face in polygonize(noded):
        if face.area <= tolerance:
            continue
        if not polygon.contains(face.representative_point()):
            continue
        faces.append(face)
    return faces


# ---------------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------------

def point_at(line: LineString, t: float) -> Coord:
    """Point at normalised parameter *t* along a straight segment."""
    (x0, y0), (x1, y1) = line.coords[0], line.coords[-1]
    return (x0 + (x1 - x0) * t, y0 + (y1 - y0) * t)


def extend_line(line: LineString, start: float, end: Optional[float] = None) -> LineString:
    """Extend the first and last segment of *line* linearly."""
    if end is None:
        end = start
    coords = list(line.coords)
    if len(coords) < 2 or (start == 0 and end == 0):
        return line
    if start:
        coords[0] = _push(coords[1], coords[0], start)
    if end:
        coords[-1] = _push(coords[-2], coords[-1], end)
    return LineString(coords)


def _push(anchor: Sequence[float], tip: Sequence[float], distance: float) -> Coord:
    dx, dy = tip[0] - anchor[0], tip[1] - anchor[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return (tip[0], tip[1])
    return (tip[0] + dx / length * distance, tip[1] + dy / length * distance)


def offset_segment(segment: LineString, distance: float) -> Optional[LineString]:
    """
    Parallel copy of a straight segment, *distance* to its left
    (negative distance = right).  Returns ``None`` for degenerate input.
    """
    if segment.length == 0:
        return None
    shifted = segment.offset_curve(distance)
    if shifted.is_empty or shifted.length == 0:
        return None
    return LineString([shifted.coords[0], shifted.coords[-1]])


def offset_toward(line: LineString, distance: float, target: Point) -> Optional[LineString]:
    """Offset an open polyline by *distance* on the side facing *target*."""
    if distance == 0:
        return line
    candidates = []
    for d in (distance, -distance):
        shifted = line.offset_curve(d, join_style="mitre")
        if shifted.is_empty:
            continue
        if shifted.geom_type == "MultiLineString":
            shifted = max(shifted.geoms, key=lambda g: g.length)
        candidates.append(shifted)
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.distance(target))


def offset_ring(polygon: Polygon, distance: float, tolerance: float) -> Optional[Polygon]:
    """
    Offset a closed outline with sharp corners; positive grows, negative
    shrinks.  ``None`` when the offset collapses.
    """
    result = polygon.buffer(distance, join_style="mitre")
    result = largest_polygon(result)
    if result is None or result.area <= tolerance:
        return None
    return orient(result, sign=1.0)


def join_lines(lines: Sequence[LineString], tolerance: float) -> Optional[LineString]:
    """
    Join edge segments into one polyline.

    Segments repeating an already used start or end point are skipped.
    When the joined result has several pieces the first is returned.
    """
    used_starts: List[Coord] = []
    used_ends: List[Coord] = []
    kept = []
    for line in lines:
        start, end = line.coords[0], line.coords[-1]
        if any(_close(start, s, tolerance) for s in used_starts):
            continue
        if any(_close(end, e, tolerance) for e in used_ends):
            continue
        used_starts.append(start)
        used_ends.append(end)
        kept.append(line)
    if not kept:
        return None
    merged = linemerge(MultiLineString([list(l.coords) for l in kept]))
    if merged.is_empty:
        return None
    if merged.geom_type == "MultiLineString":
        return merged.geoms[0]
    return merged


def _close(a: Sequence[float], b: Sequence[float], tolerance: float) -> bool:
    return math.hypot(a[0] - b[0], a[1] - b[1]) <= tolerance


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def as_segments(curves: Iterable) -> List[LineString]:
    """Decompose (multi)line curves into two-point segments."""
    segments = []
    for curve in curves:
        for part in getattr(curve, "geoms", [curve]):
            coords = list(part.coords)
            for a, b in zip(coords[:-1], coords[1:]):
                if a != b:
                    segments.append(LineString([a, b]))
    return segments


def distance_to_segments(point: Point, segments: Sequence[LineString]) -> float:
    """Minimum distance from *point* to any segment; ``inf`` if none."""
    if not segments:
        return math.inf
    return min(seg.distance(point) for seg in segments)


def segment_intersection(a: LineString, b: LineString) -> Optional[Tuple[float, float]]:
    """
    Parameters ``(ta, tb)`` at which the infinite lines through *a* and
    *b* cross, or ``None`` if they are parallel.
    """
    (ax0, ay0), (ax1, ay1) = a.coords[0], a.coords[-1]
    (bx0, by0), (bx1, by1) = b.coords[0], b.coords[-1]
    dax, day = ax1 - ax0, ay1 - ay0
    dbx, dby = bx1 - bx0, by1 - by0
    denom = dax * dby - day * dbx
    if abs(denom) < 1e-12:
        return None
    ox, oy = bx0 - ax0, by0 - ay0
    ta = (ox * dby - oy * dbx) / denom
    tb = (ox * day - oy * dax) / denom
    return ta, tb
