"""
Tests for road setbacks and pedestrian outlines.
"""
import sys
import os
import pytest
from shapely.geometry import LineString, box

# Add project root to path
sys.path.insert(0, os.path.dirname(__file__))

from citymorph.block_engine.block_model import Block
from citymorph.block_engine.geometry import as_segments
from citymorph.block_engine.params import ConfigurationError
from citymorph.block_engine.setback import (
    CLASS_A,
    CLASS_B,
    CLASS_OTHER,
    apply_setbacks,
    classify_edge,
    largest_fragment,
    pedestrian_outline,
)

TOL = 0.001
FAR_BOUNDARY = box(-1000, -1000, 1000, 1000)


def _block(*bounds):
    return Block.from_polygon(box(*bounds), TOL)


class TestClassifyEdge:
    def test_edge_on_class_a(self):
        road_a = as_segments([LineString([(-50, 0), (150, 0)])])
        edge = LineString([(0, 0), (100, 0)])
        assert classify_edge(edge, road_a, [], TOL) == CLASS_A

    def test_edge_on_class_b(self):
        road_b = as_segments([LineString([(100, -50), (100, 150)])])
        edge = LineString([(100, 0), (100, 100)])
        assert classify_edge(edge, [], road_b, TOL) == CLASS_B

    def test_class_a_wins(self):
        road = as_segments([LineString([(0, 0), (100, 0)])])
        edge = LineString([(0, 0), (100, 0)])
        assert classify_edge(edge, road, road, TOL) == CLASS_A

    def test_edge_only_touching_road(self):
        road_a = as_segments([LineString([(0, 0), (0, 100)])])
        edge = LineString([(0, 0), (100, 0)])
        assert classify_edge(edge, road_a, [], TOL) == CLASS_OTHER


class TestFragments:
    def test_largest_fragment_kept(self):
        block = _block(0, 0, 100, 100)
        kept = largest_fragment(block, [LineString([(20, -5), (20, 105)])], TOL)
        assert kept.area == pytest.approx(8000)

    def test_pedestrian_outline(self):
        outline = pedestrian_outline(_block(0, 0, 100, 50), 5, TOL)
        assert outline.area == pytest.approx(90 * 40)

    def test_zero_pedestrian_offset(self):
        block = _block(0, 0, 100, 50)
        assert pedestrian_outline(block, 0, TOL) is block.polygon


class TestApplySetbacks:
    def test_road_side_gets_wider_setback(self):
        road_a = [LineString([(-50, 0), (150, 0)])]
        result = apply_setbacks([_block(0, 0, 100, 100)], road_a, [], FAR_BOUNDARY,
                                width_a=5, width_b=3, width_other=1, pedestrian_offset=2)
        assert len(result.blocks) == 1
        # 5+2 from the road edge, 1+2 from the other three
        assert result.blocks[0].area == pytest.approx(94 * 90)
        assert result.pedestrian_outlines[0].area == pytest.approx(90 * 86)

    def test_class_b_edge(self):
        road_b = [LineString([(100, -50), (100, 150)])]
        result = apply_setbacks([_block(0, 0, 100, 100)], [], road_b, FAR_BOUNDARY,
                                width_a=5, width_b=3, width_other=0, pedestrian_offset=0)
        assert result.blocks[0].area == pytest.approx(97 * 100)

    def test_site_boundary_offset(self):
        boundary = box(0, 0, 100, 100)
        road_a = [LineString([(0, 0), (100, 0)])]
        result = apply_setbacks([_block(0, 0, 100, 100)], road_a, [], boundary,
                                width_a=5, width_b=3, width_other=1, pedestrian_offset=2)
        # x from the boundary ring (5..95), y from the road offset (7) to the ring (95)
        assert result.blocks[0].area == pytest.approx(90 * 88)

    def test_output_follows_input_order(self):
        blocks = [_block(0, 0, 50, 50), _block(60, 0, 160, 100)]
        result = apply_setbacks(blocks, [], [], FAR_BOUNDARY,
                                width_a=0, width_b=0, width_other=1, pedestrian_offset=0)
        assert [b.area for b in result.blocks] == pytest.approx([48 * 48, 98 * 98])
        assert len(result.pedestrian_outlines) == 2

    def test_collapsed_outline_is_none(self):
        result = apply_setbacks([_block(0, 0, 10, 10)], [], [], FAR_BOUNDARY,
                                width_a=0, width_b=0, width_other=1, pedestrian_offset=4)
        assert len(result.blocks) == 1
        assert result.pedestrian_outlines == [None]
        assert any("collapsed" in d for d in result.diagnostics)

    def test_negative_width_rejected(self):
        with pytest.raises(ConfigurationError):
            apply_setbacks([_block(0, 0, 10, 10)], [], [], FAR_BOUNDARY,
                           width_a=-1, width_b=0, width_other=0, pedestrian_offset=0)
