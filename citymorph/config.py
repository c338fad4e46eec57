"""Runtime configuration and fixed geometric constants."""

import logging
import os
from pathlib import Path

EXPORT_DIR = Path(os.getenv("EXPORT_DIR", "exports"))

# Geometric tolerance handed to every primitive call (model units).
TOLERANCE = float(os.getenv("CITYMORPH_TOLERANCE", "0.001"))

# Hard cap on loop iterations of one subdivision pass.
MAX_PASS_ITERATIONS = int(os.getenv("CITYMORPH_MAX_ITERATIONS", "200"))

# Consecutive iterations without a successful split before a pass gives up.
MAX_STALLED_ITERATIONS = 3

LOG_LEVEL = os.getenv("CITYMORPH_LOG_LEVEL", "WARNING")

# Setback cutters are extended this far past both ends of the offset edge.
SETBACK_EXTENSION = 10.0

# Tower cutters are extended this far past both ends.
TOWER_EXTENSION = 20.0

FLOOR_HEIGHT = 3.0
OUTER_BORDER = 2.0
HIGH_TIER_BASE_FLOORS = 5

# Edge-midpoint distance that marks a footprint edge as road-facing.
PRIMARY_ADJACENCY = 30.0
SECONDARY_ADJACENCY = 15.0

# FAR tier bounds: [low, mid), [mid, high), [high, max]
FAR_LOW = 0.5
FAR_MID = 2.0
FAR_HIGH = 5.0
FAR_MAX = 20.0

# Attempts at drawing a radiating-division centre inside the block.
CENTER_SAMPLE_ATTEMPTS = 20


def configure_logging(level: str = LOG_LEVEL):
    """Attach a basic handler for command-line and notebook use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
