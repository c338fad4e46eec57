"""
Tests for recursive block subdivision.

Covers the area budget, the division line builders, single splits and
the two-pass driver: termination, determinism and parameter validation.
"""
import random
import sys
import os
import pytest
from shapely.geometry import LineString, Polygon, box

# Add project root to path
sys.path.insert(0, os.path.dirname(__file__))

from citymorph import config
from citymorph.block_engine import subdivision
from citymorph.block_engine.block_model import Block
from citymorph.block_engine.geometry import as_segments
from citymorph.block_engine.params import ConfigurationError, PassParams
from citymorph.block_engine.subdivision import (
    division_at_longest,
    division_by_pairs,
    division_by_pairs_eliminated,
    division_from_center,
    execute_division,
    over_budget,
    proximity_factor,
    subdivide,
)

TOL = 0.001


def _square_site():
    return box(0, 0, 100, 100), [LineString([(0, 0), (100, 0)])]


# ============================================================================
# Area budget
# ============================================================================

class TestBudget:
    def test_near_block_gets_smaller_budget(self):
        block = Block.from_polygon(box(0, 0, 100, 100), TOL)
        roads = as_segments([LineString([(0, 0), (100, 0)])])
        # centroid is exactly at the cutoff, which still counts as near
        assert proximity_factor(block, roads, 50, 0.2) == pytest.approx(0.8)

    def test_far_block_gets_larger_budget(self):
        block = Block.from_polygon(box(0, 0, 100, 100), TOL)
        roads = as_segments([LineString([(0, 0), (100, 0)])])
        assert proximity_factor(block, roads, 49.9, 0.2) == pytest.approx(1.2)

    def test_over_budget(self):
        block = Block.from_polygon(box(0, 0, 100, 100), TOL)
        roads = as_segments([LineString([(0, 0), (100, 0)])])
        assert over_budget(block, roads, PassParams(9000, 50, 0.2, 5))
        assert not over_budget(block, roads, PassParams(9000, 10, 0.2, 5))


# ============================================================================
# Division lines
# ============================================================================

class TestDivisions:
    def test_longest_edge_division(self):
        block = Block.from_polygon(box(0, 0, 100, 20), TOL)
        lines = division_at_longest(block, random.Random(1), 0.0, TOL)
        assert len(lines) == 1
        assert lines[0].length == pytest.approx(20)
        parts = execute_division(block, lines, TOL)
        assert sorted(p.area for p in parts) == pytest.approx([1000, 1000])

    def test_pair_division_of_square(self):
        block = Block.from_polygon(box(0, 0, 100, 100), TOL)
        lines = division_by_pairs(block, random.Random(1), 0.1, TOL)
        assert len(lines) == 2
        parts = execute_division(block, lines, TOL)
        assert len(parts) == 4
        assert all(p.edge_count == 4 for p in parts)
        assert sum(p.area for p in parts) == pytest.approx(10000)

    def test_pair_division_needs_quadrilateral(self):
        block = Block.from_polygon(box(0, 0, 100, 100).union(box(100, 0, 150, 50)), TOL)
        assert division_by_pairs(block, random.Random(1), 0.1, TOL) == []

    def test_narrow_end_elimination(self):
        block = Block.from_polygon(box(0, 0, 100, 100), TOL)
        lines = division_by_pairs_eliminated(block, random.Random(1), 0.0, TOL)
        assert sorted(l.length for l in lines) == pytest.approx([50, 100], abs=0.01)
        parts = execute_division(block, lines, TOL)
        assert len(parts) == 3
        assert sorted(p.area for p in parts) == pytest.approx([2500, 2500, 5000], abs=0.01)

    def test_radiating_division(self):
        block = Block.from_polygon(box(0, 0, 100, 100).union(box(100, 0, 150, 50)), TOL)
        lines = division_from_center(block, random.Random(3), 5, 0.1, TOL)
        assert len(lines) == block.edge_count
        parts = execute_division(block, lines, TOL)
        assert len(parts) >= 2
        assert sum(p.area for p in parts) == pytest.approx(block.area, rel=1e-6)

    def test_split_conserves_area(self):
        block = Block.from_polygon(box(0, 0, 100, 100), TOL)
        parts = execute_division(block, [LineString([(30, -1), (70, 101)])], TOL)
        assert len(parts) == 2
        assert sum(p.area for p in parts) == pytest.approx(10000)


# ============================================================================
# Driver
# ============================================================================

class TestSubdivide:
    def test_square_with_one_road(self):
        boundary, roads = _square_site()
        coarse = PassParams(2000, 50, 0.2, 5)
        fine = PassParams(2000, 50, 0.2, 5)
        result = subdivide(boundary, roads, coarse, fine, seed=1)
        assert len(result.blocks) >= 2
        assert result.converged is True
        assert result.split_lines_coarse
        assert result.split_lines_fine == []

    def test_every_block_within_budget(self):
        boundary, roads = _square_site()
        fine = PassParams(800, 30, 0.25, 3)
        result = subdivide(boundary, roads, PassParams(2500, 50, 0.2, 5), fine, seed=5)
        segments = as_segments(roads)
        assert result.converged
        assert not any(over_budget(b, segments, fine) for b in result.blocks)
        assert sum(b.area for b in result.blocks) == pytest.approx(10000, rel=1e-3)

    def test_elongated_site_shape_correction(self):
        boundary = box(0, 0, 300, 20)
        roads = [LineString([(0, 0), (300, 0)])]
        params = PassParams(2000, 50, 0.2, 2)
        result = subdivide(boundary, roads, params, params, seed=2)
        assert result.converged
        assert len(result.blocks) >= 4
        assert sum(b.area for b in result.blocks) == pytest.approx(6000, rel=1e-3)

    def test_road_through_site(self):
        boundary = box(0, 0, 200, 100)
        roads = [LineString([(100, -20), (100, 120)])]
        params = PassParams(50000, 10, 0.1, 5)
        result = subdivide(boundary, roads, params, params, seed=0)
        assert len(result.blocks) == 2
        assert sorted(b.area for b in result.blocks) == pytest.approx([10000, 10000])

    def test_same_seed_same_output(self):
        boundary, roads = _square_site()
        coarse = PassParams(3000, 50, 0.2, 5)
        fine = PassParams(900, 40, 0.2, 3, eliminate_narrow_end=True)
        a = subdivide(boundary, roads, coarse, fine, seed=7)
        b = subdivide(boundary, roads, coarse, fine, seed=7)
        assert [x.polygon.wkt for x in a.blocks] == [x.polygon.wkt for x in b.blocks]
        assert [l.wkt for l in a.split_lines_fine] == [l.wkt for l in b.split_lines_fine]

    def test_accepts_seeded_generator(self):
        boundary, roads = _square_site()
        params = PassParams(3000, 50, 0.2, 5)
        a = subdivide(boundary, roads, params, params, seed=random.Random(11))
        b = subdivide(boundary, roads, params, params, seed=11)
        assert [x.polygon.wkt for x in a.blocks] == [x.polygon.wkt for x in b.blocks]

    def test_iteration_cap_reports_non_convergence(self):
        boundary, roads = _square_site()
        params = PassParams(100, 50, 0.2, 5)
        result = subdivide(boundary, roads, params, params, seed=1, max_iterations=1)
        assert result.converged is False
        assert any("without converging" in d for d in result.diagnostics)

    def test_failed_splits_retried_before_giving_up(self, monkeypatch):
        calls = []

        def failing_division(block, division, tolerance):
            calls.append(block)
            return []

        monkeypatch.setattr(subdivision, "execute_division", failing_division)
        boundary, roads = _square_site()
        result = subdivide(boundary, roads, PassParams(2000, 50, 0.2, 5),
                           PassParams(1e6, 50, 0.2, 5), seed=1)
        assert result.converged is False
        assert any("no progress" in d for d in result.diagnostics)
        # one road split, then one area split per stalled iteration
        assert len(calls) == 1 + config.MAX_STALLED_ITERATIONS
        assert len(result.blocks) == 1

    def test_pass_recovers_after_a_failed_iteration(self, monkeypatch):
        real_division = subdivision.execute_division
        calls = []

        def flaky_division(block, division, tolerance):
            calls.append(block)
            if len(calls) == 2:
                return []
            return real_division(block, division, tolerance)

        monkeypatch.setattr(subdivision, "execute_division", flaky_division)
        boundary, roads = _square_site()
        params = PassParams(2000, 50, 0.2, 5)
        result = subdivide(boundary, roads, params, params, seed=1)
        assert result.converged is True
        assert len(result.blocks) >= 4


class TestValidation:
    def test_no_primary_roads(self):
        params = PassParams(2000, 50, 0.2, 5)
        with pytest.raises(ConfigurationError):
            subdivide(box(0, 0, 100, 100), [], params, params)

    def test_non_positive_threshold(self):
        boundary, roads = _square_site()
        with pytest.raises(ConfigurationError):
            subdivide(boundary, roads, PassParams(0, 50, 0.2, 5), PassParams(2000, 50, 0.2, 5))

    def test_amplification_out_of_range(self):
        boundary, roads = _square_site()
        params = PassParams(2000, 50, 1.0, 5)
        with pytest.raises(ConfigurationError):
            subdivide(boundary, roads, params, params)

    def test_jitter_out_of_range(self):
        boundary, roads = _square_site()
        params = PassParams(2000, 50, 0.2, 5)
        with pytest.raises(ConfigurationError):
            subdivide(boundary, roads, params, params, jitter=0.7)

    def test_degenerate_boundary(self):
        params = PassParams(2000, 50, 0.2, 5)
        with pytest.raises(ConfigurationError):
            subdivide(Polygon(), [LineString([(0, 0), (1, 0)])], params, params)

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
