"""
Tests for the four-stage generation pipeline.

Runs the whole generator on a small two-road site and checks the shape
of the result, determinism and up-front validation.
"""
import sys
import os
import pytest
from shapely.geometry import LineString, box

# Add project root to path
sys.path.insert(0, os.path.dirname(__file__))

from citymorph.block_engine import ConfigurationError, UrbanGenerator
from citymorph.block_engine.params import (
    BandParams,
    DensityParams,
    GenerationParams,
    MassingParams,
    PassParams,
    SetbackParams,
    SubdivisionParams,
)

SITE = box(0, 0, 400, 300)
PRIMARY = [LineString([(200, -50), (200, 350)])]
SECONDARY = [LineString([(-50, 150), (450, 150)])]


def _params(class_b_active=False):
    return GenerationParams(
        subdivision=SubdivisionParams(
            coarse=PassParams(8000, 80, 0.2, 10),
            fine=PassParams(3000, 40, 0.2, 5),
            length_ratio=4.0,
            jitter=0.15,
        ),
        setback=SetbackParams(width_a=6, width_b=4, width_other=2, pedestrian_offset=1.5),
        density=DensityParams(
            bands=(
                BandParams((100, 1000), (8.0, 1.0)),
                BandParams((50, 500), (2.0, 1.0), active=class_b_active),
                BandParams((), (), active=False),
            ),
            weights=(1.0, 0.5, 0.0),
        ),
        massing=MassingParams(setback_ratios=(0.6, 0.5, 0.6), tower_ratio=0.6),
    )


@pytest.fixture(scope="module")
def result():
    generator = UrbanGenerator(SITE, PRIMARY, SECONDARY)
    return generator.generate(_params(), seed=3)


class TestGenerate:
    def test_result_keys(self, result):
        for key in (
            "blocks", "split_lines_coarse", "split_lines_fine", "setback_blocks",
            "pedestrian_outlines", "densities", "buildings", "footprints",
            "volumes", "yards", "tower_volumes", "converged", "diagnostics",
            "summary",
        ):
            assert key in result

    def test_subdivision_converged(self, result):
        assert result["converged"] is True
        assert len(result["blocks"]) > 2
        assert sum(b.area for b in result["blocks"]) == pytest.approx(SITE.area, rel=1e-3)

    def test_setback_lists_aligned(self, result):
        assert len(result["pedestrian_outlines"]) == len(result["setback_blocks"])
        assert len(result["densities"]) == len(result["setback_blocks"])
        assert len(result["setback_blocks"]) <= len(result["blocks"])

    def test_setback_blocks_inside_site(self, result):
        for block in result["setback_blocks"]:
            assert SITE.contains(block.polygon)

    def test_every_block_has_density(self, result):
        assert all(d >= 1.0 for d in result["densities"])

    def test_buildings_generated(self, result):
        assert result["footprints"]
        assert result["volumes"]
        for building in result["buildings"]:
            assert 0 <= building.block_index < len(result["setback_blocks"])

    def test_summary_counts(self, result):
        summary = result["summary"]
        assert summary["blocks"] == len(result["blocks"])
        assert summary["footprints"] == len(result["footprints"])
        assert summary["towers"] == len(result["tower_volumes"])

    def test_same_seed_same_result(self):
        generator = UrbanGenerator(SITE, PRIMARY, SECONDARY)
        a = generator.generate(_params(), seed=11)
        b = generator.generate(_params(), seed=11)
        assert [x.polygon.wkt for x in a["blocks"]] == [x.polygon.wkt for x in b["blocks"]]
        assert [f.wkt for f in a["footprints"]] == [f.wkt for f in b["footprints"]]

    def test_dict_export(self, result):
        building = result["buildings"][0]
        data = building.to_dict()
        assert data["tier"] in ("low", "mid", "high")
        assert data["outline"][0] == data["outline"][-1]
        assert result["blocks"][0].to_dict()["area"] > 0


class TestValidation:
    def test_active_class_without_roads(self):
        generator = UrbanGenerator(SITE, PRIMARY)
        with pytest.raises(ConfigurationError):
            generator.generate(_params(class_b_active=True), seed=1)

    def test_invalid_setback(self):
        params = _params()
        params.setback.width_other = -1
        with pytest.raises(ConfigurationError):
            UrbanGenerator(SITE, PRIMARY, SECONDARY).generate(params)

    def test_invalid_tolerance(self):
        generator = UrbanGenerator(SITE, PRIMARY, SECONDARY, tolerance=0)
        with pytest.raises(ConfigurationError):
            generator.generate(_params())

    def test_no_primary_roads(self):
        generator = UrbanGenerator(SITE, [], SECONDARY)
        with pytest.raises(ConfigurationError):
            generator.generate(_params())
