"""
Main urban generator, orchestrating the four stages.

Pipeline:
  1. Subdivide the site by the primary roads into blocks
  2. Cut the blocks back from their roads, derive pedestrian outlines
  3. Classify every block's density from its road distances
  4. Generate footprints, building volumes, yards and towers
"""

import logging
import random
from typing import Optional, Sequence

from shapely.geometry import Polygon

from .. import config
from .height import build_road_classes, classify_blocks
from .massing import generate as generate_massing
from .params import ConfigurationError, GenerationParams, validate_tolerance
from .setback import apply_setbacks
from .subdivision import subdivide_with

logger = logging.getLogger(__name__)


class UrbanGenerator:
    """
    Generate blocks and building massing for one site.

    Parameters
    ----------
    boundary : Polygon
        Site boundary.
    primary_roads : list[LineString]
        Class-A roads.  They cut the site, widen setbacks and attract
        primary towers.
    secondary_roads : list[LineString], optional
        Class-B roads.
    tertiary_roads : list[LineString], optional
        Class-C roads; only used by the density classifier.
    tolerance : float
        Geometric tolerance for every primitive call.
    """

    def __init__(
        self,
        boundary: Polygon,
        primary_roads: Sequence,
        secondary_roads: Sequence = (),
        tertiary_roads: Sequence = (),
        tolerance: float = config.TOLERANCE,
    ):
        self.boundary = boundary
        self.primary_roads = list(primary_roads)
        self.secondary_roads = list(secondary_roads)
        self.tertiary_roads = list(tertiary_roads)
        self.tolerance = tolerance

    def generate(self, params: GenerationParams, seed: Optional[int] = None) -> dict:
        """
        Run the whole pipeline.

        All parameters are validated before any geometry is touched.

        Returns
        -------
        dict
            ``blocks``, ``split_lines_coarse``, ``split_lines_fine``,
            ``setback_blocks``, ``pedestrian_outlines``, ``densities``,
            ``buildings``, ``footprints``, ``volumes``, ``yards``,
            ``tower_volumes``, ``converged``, ``diagnostics`` and a
            ``summary`` of counts.
        """
        params.validate()
        validate_tolerance(self.tolerance)
        if self.boundary is None or self.boundary.is_empty:
            raise ConfigurationError("boundary polygon is empty")
        road_classes = build_road_classes(
            (self.primary_roads, self.secondary_roads, self.tertiary_roads),
            params.density,
        )

        rng = random.Random(seed)

        # -- 1. subdivision --
        sub = subdivide_with(self.boundary, self.primary_roads, params.subdivision,
                             rng, self.tolerance)
        diagnostics = list(sub.diagnostics)

        # -- 2. setbacks --
        sb = params.setback
        setback = apply_setbacks(
            sub.blocks, self.primary_roads, self.secondary_roads, self.boundary,
            sb.width_a, sb.width_b, sb.width_other, sb.pedestrian_offset,
            tolerance=self.tolerance,
        )
        diagnostics.extend(setback.diagnostics)

        # -- 3. density --
        densities = classify_blocks(setback.blocks, road_classes, params.density.weights)

        # -- 4. massing; blocks without density stay unbuilt --
        built = [i for i, d in enumerate(densities) if d > 0]
        if len(built) < len(densities):
            diagnostics.append(f"{len(densities) - len(built)} blocks have zero density and stay unbuilt")
        massing = generate_massing(
            [setback.blocks[i] for i in built],
            [densities[i] for i in built],
            params.massing.setback_ratios,
            self.primary_roads,
            self.secondary_roads,
            params.massing.tower_ratio,
            tolerance=self.tolerance,
        )
        for building in massing.buildings:
            building.block_index = built[building.block_index]
        diagnostics.extend(massing.diagnostics)

        summary = {
            "blocks": len(sub.blocks),
            "setback_blocks": len(setback.blocks),
            "footprints": len(massing.footprints),
            "volumes": len(massing.volumes),
            "yards": len(massing.yards),
            "towers": len(massing.tower_volumes),
        }
        logger.info(f"Generation finished: {summary}")

        return {
            "blocks": sub.blocks,
            "split_lines_coarse": sub.split_lines_coarse,
            "split_lines_fine": sub.split_lines_fine,
            "setback_blocks": setback.blocks,
            "pedestrian_outlines": setback.pedestrian_outlines,
            "densities": densities,
            "buildings": massing.buildings,
            "footprints": massing.footprints,
            "volumes": massing.volumes,
            "yards": massing.yards,
            "tower_volumes": massing.tower_volumes,
            "converged": sub.converged,
            "diagnostics": diagnostics,
            "summary": summary,
        }
