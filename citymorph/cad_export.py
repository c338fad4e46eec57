"""
CAD File Generation using ezdxf.

Writes the plan geometry of a generation result to a layered DXF:
site boundary, roads, blocks, split lines, pedestrian outlines,
footprints and courtyards, with each block's density as a label.
"""

from pathlib import Path
from typing import Iterable, Optional

import ezdxf
from ezdxf.enums import TextEntityAlignment

LAYERS = {
    "BOUNDARY": 7,
    "ROADS": 1,
    "SPLIT_COARSE": 8,
    "SPLIT_FINE": 9,
    "BLOCKS": 3,
    "PEDESTRIAN": 4,
    "FOOTPRINTS": 5,
    "YARDS": 6,
    "LABELS": 10,
}


def _ring(msp, polygon, layer: str):
    if polygon is None or polygon.is_empty:
        return
    poly = getattr(polygon, "polygon", polygon)
    msp.add_lwpolyline(
        [(x, y) for x, y, *_ in poly.exterior.coords],
        close=True,
        dxfattribs={"layer": layer},
    )


def _lines(msp, lines: Iterable, layer: str):
    for line in lines:
        for part in getattr(line, "geoms", [line]):
            msp.add_lwpolyline(
                [(x, y) for x, y, *_ in part.coords],
                dxfattribs={"layer": layer},
            )


def generate_dxf(result: dict, output_path: str, boundary=None,
                 roads: Optional[Iterable] = None) -> str:
    """
    Generate a DXF file from a generation result.

    Args:
        result: Dict returned by ``UrbanGenerator.generate``.
        output_path: Path to save the DXF file.
        boundary: Optional site boundary polygon.
        roads: Optional road curves.

    Returns:
        Path to the generated DXF file.
    """
    doc = ezdxf.new("R2010")
    msp = doc.modelspace()
    for name, color in LAYERS.items():
        doc.layers.add(name, color=color)

    if boundary is not None:
        _ring(msp, boundary, "BOUNDARY")
    _lines(msp, roads or [], "ROADS")
    _lines(msp, result.get("split_lines_coarse", []), "SPLIT_COARSE")
    _lines(msp, result.get("split_lines_fine", []), "SPLIT_FINE")

    densities = result.get("densities", [])
    for i, block in enumerate(result.get("setback_blocks", [])):
        _ring(msp, block, "BLOCKS")
        if i < len(densities):
            c = block.centroid
            msp.add_text(
                f"{densities[i]:.2f}",
                height=2.0,
                dxfattribs={"layer": "LABELS"},
            ).set_placement((c.x, c.y), align=TextEntityAlignment.MIDDLE_CENTER)

    for outline in result.get("pedestrian_outlines", []):
        _ring(msp, outline, "PEDESTRIAN")
    for footprint in result.get("footprints", []):
        _ring(msp, footprint, "FOOTPRINTS")
    for yard in result.get("yards", []):
        _ring(msp, yard, "YARDS")

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    doc.saveas(output_path)
    return output_path
