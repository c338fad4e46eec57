"""Generate sample sites with the urban generator.

Creates, for each sample site, a layered DXF plan and a GLB massing model
in ``EXPORT_DIR``:
  - grid: square site cut by one primary road, one secondary road
  - strip: long site along a primary road, crossed by a secondary road
"""

from pathlib import Path

from shapely.geometry import LineString, box

from citymorph import config
from citymorph.block_engine import UrbanGenerator
from citymorph.block_engine.params import (
    BandParams,
    DensityParams,
    GenerationParams,
    MassingParams,
    PassParams,
    SetbackParams,
    SubdivisionParams,
)
from citymorph.cad_export import generate_dxf
from citymorph.model3d import export_volumes


def sample_params() -> GenerationParams:
    return GenerationParams(
        subdivision=SubdivisionParams(
            coarse=PassParams(threshold=8000, distance_cutoff=80, amplification=0.2,
                              containment_radius=10),
            fine=PassParams(threshold=3000, distance_cutoff=40, amplification=0.2,
                            containment_radius=5, eliminate_narrow_end=True),
            length_ratio=4.0,
            jitter=0.15,
        ),
        setback=SetbackParams(width_a=6, width_b=4, width_other=2, pedestrian_offset=1.5),
        density=DensityParams(
            bands=(
                BandParams((60, 150, 400), (8.0, 3.0, 1.0)),
                BandParams((40, 120), (2.0, 1.0)),
                BandParams((), (), active=False),
            ),
            weights=(1.0, 0.5, 0.0),
        ),
        massing=MassingParams(setback_ratios=(0.6, 0.5, 0.6), tower_ratio=0.6),
    )


SAMPLES = {
    "grid": (
        box(0, 0, 400, 400),
        [LineString([(200, -50), (200, 450)])],
        [LineString([(-50, 200), (450, 200)])],
    ),
    "strip": (
        box(0, 0, 600, 120),
        [LineString([(-50, 0), (650, 0)])],
        [LineString([(300, -50), (300, 170)])],
    ),
}


def generate_sample(name: str, boundary, primary, secondary, out_dir: Path, seed: int = 1) -> dict:
    """Run the generator on one site and write its DXF and GLB files."""
    result = UrbanGenerator(boundary, primary, secondary).generate(sample_params(), seed=seed)
    out_dir.mkdir(parents=True, exist_ok=True)
    generate_dxf(result, str(out_dir / f"{name}.dxf"), boundary=boundary,
                 roads=list(primary) + list(secondary))
    if result["volumes"] or result["tower_volumes"]:
        export_volumes(result, str(out_dir / f"{name}.glb"))
    print(f"  Created: {name}  {result['summary']}")
    return result


def main():
    config.configure_logging()
    print("Generating sample sites...\n")
    for name, (boundary, primary, secondary) in SAMPLES.items():
        generate_sample(name, boundary, primary, secondary, config.EXPORT_DIR)
    print(f"\nAll {len(SAMPLES)} samples saved to: {config.EXPORT_DIR}")


if __name__ == "__main__":
    main()
