"""
3D Model Generation.

Turns generated volumes (podiums, perimeter blocks, towers) into trimesh
solids and exports them as a glTF/OBJ scene.
"""

from pathlib import Path
from typing import Iterable, Optional

import trimesh
from shapely.geometry import MultiPolygon


VOLUME_COLORS = {
    "building": [220, 220, 220, 255],
    "tower": [180, 200, 230, 255],
    "block": [200, 200, 200, 255],
}


def extrude_volume(volume) -> trimesh.Trimesh:
    """Extrude a volume's footprint to its height and lift it to its base."""
    poly = volume.footprint
    if not poly.is_valid:
        poly = poly.buffer(0)
    if isinstance(poly, MultiPolygon):
        poly = max(poly.geoms, key=lambda g: g.area)
    if poly.is_empty or volume.height <= 0:
        return trimesh.Trimesh()

    mesh = trimesh.creation.extrude_polygon(poly, volume.height)
    if volume.base_z != 0.0:
        mesh.apply_translation([0, 0, volume.base_z])
    return mesh


def _colored(mesh: trimesh.Trimesh, color) -> trimesh.Trimesh:
    mesh.visual = trimesh.visual.ColorVisuals(mesh=mesh, face_colors=color)
    return mesh


def build_scene(volumes: Iterable, tower_volumes: Iterable = (),
                blocks: Optional[Iterable] = None) -> trimesh.Scene:
    """Scene with buildings, towers and (optionally) thin block slabs."""
    meshes = []

    for block in blocks or []:
        poly = getattr(block, "polygon", block)
        slab = trimesh.creation.extrude_polygon(poly, 0.2)
        slab.apply_translation([0, 0, -0.2])
        meshes.append(_colored(slab, VOLUME_COLORS["block"]))

    for volume in volumes:
        mesh = extrude_volume(volume)
        if mesh.vertices.shape[0] > 0:
            meshes.append(_colored(mesh, VOLUME_COLORS["building"]))

    for volume in tower_volumes:
        mesh = extrude_volume(volume)
        if mesh.vertices.shape[0] > 0:
            meshes.append(_colored(mesh, VOLUME_COLORS["tower"]))

    if not meshes:
        raise ValueError("No valid geometry could be generated for 3D model.")
    return trimesh.Scene(meshes)


def export_volumes(result: dict, output_path: str, include_blocks: bool = True) -> str:
    """
    Export the volumes of a generation result.

    Args:
        result: Dict returned by ``UrbanGenerator.generate``.
        output_path: ``.glb``/``.gltf`` or ``.obj`` path; other suffixes get ``.glb``.

    Returns:
        Path to the generated file.
    """
    scene = build_scene(
        result.get("volumes", []),
        result.get("tower_volumes", []),
        result.get("setback_blocks") if include_blocks else None,
    )

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    if output_path.endswith(".glb") or output_path.endswith(".gltf"):
        scene.export(output_path, file_type="glb")
    elif output_path.endswith(".obj"):
        scene.export(output_path, file_type="obj")
    else:
        output_path = output_path + ".glb"
        scene.export(output_path, file_type="glb")

    return output_path
