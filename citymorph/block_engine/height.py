"""
Distance-band height classification.

Each road class maps the distance from a block's centroid to its
nearest segment onto a step function of heights.  The block value is
the weighted sum over the three classes.
"""

import logging
from typing import List, Sequence

from .block_model import Block, RoadClass
from .params import BandParams, ConfigurationError, DensityParams

logger = logging.getLogger(__name__)


def band_height(road_class: RoadClass, distance: float) -> float:
    """Height of the band containing *distance*; 0 beyond the last band."""
    return road_class.band_height(distance)


def class_height(block: Block, road_class: RoadClass) -> float:
    """Height contributed by one class; inactive classes give 0."""
    if not road_class.active:
        return 0.0
    return road_class.band_height(road_class.min_distance(block.centroid))


def validate_road_classes(road_classes: Sequence[RoadClass], weights: Sequence[float]):
    """
    Check classes and weights before any distance is measured.

    Raises
    ------
    ConfigurationError
        If there are not three classes and three weights, or an active
        class has malformed bands or no road segments.
    """
    if len(road_classes) != 3 or len(weights) != 3:
        raise ConfigurationError("three road classes and three weights are required")
    for rc in road_classes:
        if rc.active:
            BandParams(rc.thresholds, rc.heights).validate(f"class {rc.name}")
            if not rc.segments:
                raise ConfigurationError(f"road class {rc.name} is active but has no roads")


def _weighted_height(block: Block, road_classes: Sequence[RoadClass],
                     weights: Sequence[float]) -> float:
    return sum(w * class_height(block, rc) for rc, w in zip(road_classes, weights))


def classify(block: Block, road_classes: Sequence[RoadClass],
             weights: Sequence[float]) -> float:
    """Weighted sum of the per-class heights of *block*."""
    validate_road_classes(road_classes, weights)
    return _weighted_height(block, road_classes, weights)


def build_road_classes(curves_by_class: Sequence[Sequence],
                       density: DensityParams) -> List[RoadClass]:
    """
    Combine road curves with their band settings and validate them.

    Raises
    ------
    ConfigurationError
        If an active class has no road segments or malformed bands.
    """
    density.validate()
    if len(curves_by_class) != 3:
        raise ConfigurationError("exactly three road classes are required")
    classes = []
    for name, curves, band in zip("ABC", curves_by_class, density.bands):
        rc = RoadClass(
            name=name,
            curves=curves,
            thresholds=tuple(band.thresholds),
            heights=tuple(band.heights),
            active=band.active,
        )
        if rc.active and not rc.segments:
            raise ConfigurationError(f"road class {name} is active but has no roads")
        classes.append(rc)
    return classes


def classify_blocks(blocks: Sequence[Block], road_classes: Sequence[RoadClass],
                    weights: Sequence[float]) -> List[float]:
    """Height value for every block, in input order."""
    validate_road_classes(road_classes, weights)
    heights = [_weighted_height(b, road_classes, weights) for b in blocks]
    if heights:
        logger.info(f"Classified {len(heights)} blocks, values {min(heights):.2f}-{max(heights):.2f}")
    return heights
