# ================================
# file: core/coords.py
# ================================
from __future__ import annotations
from typing import Tuple, Optional, List

import numpy as np

from core.config import MAP_WIDTH, MAP_HEIGHT, FRAME_MARGIN
from core.types import Coord


class RelativeFrame:
    """相对坐标系管理 (spawn-centred frame <-> dense array index).

    Every coordinate the agent can ever observe lies within
    ``(map extent - 1) + FRAME_MARGIN`` of the spawn cell, so grids over the
    relative frame are plain numpy arrays indexed ``[iy, ix]``.
    """

    def __init__(self, map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT,
                 margin: int = FRAME_MARGIN) -> None:
        self.map_width = int(map_width)
        self.map_height = int(map_height)
        self.half_w = self.map_width - 1 + int(margin)
        self.half_h = self.map_height - 1 + int(margin)
        self.width = 2 * self.half_w + 1
        self.height = 2 * self.half_h + 1

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    def contains(self, coord: Coord) -> bool:
        x, y = coord
        return -self.half_w <= x <= self.half_w and -self.half_h <= y <= self.half_h

    def to_index(self, coord: Coord) -> Tuple[int, int]:
        """Relative (x, y) -> array index (iy, ix). Caller checks ``contains``."""
        return (coord[1] + self.half_h, coord[0] + self.half_w)

    def from_index(self, iy: int, ix: int) -> Coord:
        return (int(ix) - self.half_w, int(iy) - self.half_h)

    def full(self, fill, dtype) -> np.ndarray:
        return np.full(self.shape, fill, dtype=dtype)

    def coords_of(self, mask: np.ndarray) -> List[Coord]:
        """All relative coordinates where ``mask`` is true, row-major."""
        ys, xs = np.nonzero(mask)
        return [self.from_index(iy, ix) for iy, ix in zip(ys, xs)]


def manhattan(a: Coord, b: Coord) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def chebyshev(a: Coord, b: Coord) -> int:
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def in_map(abs_coord: Coord, map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT) -> bool:
    return 0 <= abs_coord[0] < map_width and 0 <= abs_coord[1] < map_height


def symmetric_absolute(abs_coord: Coord, map_width: int = MAP_WIDTH,
                       map_height: int = MAP_HEIGHT) -> Optional[Coord]:
    """Point-symmetric partner (W-1-x, H-1-y); None outside the arena."""
    if not in_map(abs_coord, map_width, map_height):
        return None
    return (map_width - 1 - abs_coord[0], map_height - 1 - abs_coord[1])


def boundary_ring(map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT) -> List[Coord]:
    """Absolute cells of the wall ring just outside the arena."""
    ring = [(x, y) for y in (-1, map_height) for x in range(-1, map_width + 1)]
    ring += [(x, y) for x in (-1, map_width) for y in range(0, map_height)]
    return ring

