# ================================
# file: core/__init__.py
# ================================
"""
Core Package

Exports fundamental types, configurations, and coordinate utilities.
"""
from core.types import (
    Coord, TileKind, Direction, TrapStatus, TrapReason, TrapEntry,
    VisionSnapshot, Observation, VISION_OFFSETS,
)
from core.coords import (
    RelativeFrame, manhattan, chebyshev, in_map,
    symmetric_absolute, boundary_ring,
)
from core.config import (
    # Map configuration
    MAP_WIDTH, MAP_HEIGHT, FRAME_MARGIN,

    # Probe configuration
    PROBE_MAX_DISTANCE, PROBE_RESULT_LENGTH,
)

__all__ = [
    # Types
    'Coord', 'TileKind', 'Direction', 'TrapStatus', 'TrapReason', 'TrapEntry',
    'VisionSnapshot', 'Observation', 'VISION_OFFSETS',

    # Coordinates
    'RelativeFrame', 'manhattan', 'chebyshev', 'in_map',
    'symmetric_absolute', 'boundary_ring',

    # Configuration
    'MAP_WIDTH', 'MAP_HEIGHT', 'FRAME_MARGIN',
    'PROBE_MAX_DISTANCE', 'PROBE_RESULT_LENGTH',
]
