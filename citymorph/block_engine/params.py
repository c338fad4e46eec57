"""
Run parameters for each generation stage.

Every stage validates its parameters before touching any geometry;
an invalid value raises :class:`ConfigurationError`.
"""

from dataclasses import dataclass, field
from typing import Sequence, Tuple

from .. import config


class ConfigurationError(ValueError):
    """Invalid numeric or geometric input to a generation stage."""


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigurationError(message)


@dataclass
class PassParams:
    """Area budget of one subdivision pass."""

    threshold: float
    distance_cutoff: float
    amplification: float
    containment_radius: float
    eliminate_narrow_end: bool = False

    def validate(self, name: str):
        _require(self.threshold > 0, f"{name}: threshold must be positive")
        _require(self.distance_cutoff >= 0, f"{name}: distance cutoff must be non-negative")
        _require(0 <= self.amplification < 1,
                 f"{name}: amplification must be in [0, 1)")
        _require(self.containment_radius >= 0,
                 f"{name}: containment radius must be non-negative")


@dataclass
class SubdivisionParams:
    coarse: PassParams
    fine: PassParams
    length_ratio: float = 3.0
    jitter: float = 0.1
    max_iterations: int = config.MAX_PASS_ITERATIONS

    def validate(self):
        self.coarse.validate("coarse pass")
        self.fine.validate("fine pass")
        _require(self.length_ratio > 1, "length ratio must be greater than 1")
        _require(0 <= self.jitter <= 0.5, "jitter must be in [0, 0.5]")
        _require(self.max_iterations > 0, "max_iterations must be positive")


@dataclass
class SetbackParams:
    width_a: float
    width_b: float
    width_other: float
    pedestrian_offset: float

    def validate(self):
        for label, value in (
            ("width_a", self.width_a),
            ("width_b", self.width_b),
            ("width_other", self.width_other),
            ("pedestrian_offset", self.pedestrian_offset),
        ):
            _require(value >= 0, f"{label} must be non-negative")


@dataclass
class BandParams:
    """Distance bands of one road class for the height classifier."""

    thresholds: Sequence[float]
    heights: Sequence[float]
    active: bool = True

    def validate(self, name: str):
        if not self.active:
            return
        _require(len(self.thresholds) > 0, f"{name}: no distance bands")
        _require(len(self.thresholds) == len(self.heights),
                 f"{name}: thresholds and heights differ in length")
        _require(all(t > 0 for t in self.thresholds),
                 f"{name}: thresholds must be positive")
        _require(all(a < b for a, b in zip(self.thresholds, self.thresholds[1:])),
                 f"{name}: thresholds must increase strictly")
        _require(all(h >= 0 for h in self.heights),
                 f"{name}: heights must be non-negative")
        _require(all(a >= b for a, b in zip(self.heights, self.heights[1:])),
                 f"{name}: heights must not increase with distance")


@dataclass
class DensityParams:
    bands: Tuple[BandParams, BandParams, BandParams]
    weights: Sequence[float] = (1.0, 0.0, 0.0)

    def validate(self):
        _require(len(self.bands) == 3, "exactly three road classes are required")
        _require(len(self.weights) == 3, "exactly three weights are required")
        for name, band in zip(("class A", "class B", "class C"), self.bands):
            band.validate(name)


@dataclass
class MassingParams:
    # Density ratio of the low, mid and high tier.
    setback_ratios: Sequence[float] = (0.5, 0.5, 0.5)
    tower_ratio: float = 0.5

    def validate(self):
        _require(len(self.setback_ratios) == 3, "exactly three density ratios are required")
        _require(all(0 < r <= 1 for r in self.setback_ratios),
                 "density ratios must be in (0, 1]")
        _require(0 <= self.tower_ratio <= 1, "tower ratio must be in [0, 1]")


@dataclass
class GenerationParams:
    subdivision: SubdivisionParams
    setback: SetbackParams
    density: DensityParams
    massing: MassingParams = field(default_factory=MassingParams)

    def validate(self):
        self.subdivision.validate()
        self.setback.validate()
        self.density.validate()
        self.massing.validate()


def validate_tolerance(tolerance: float):
    _require(tolerance > 0, "tolerance must be positive")
