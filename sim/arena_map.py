# ================================
# file: sim/arena_map.py
# ================================
from __future__ import annotations
from typing import List, Optional, Tuple
import numpy as np

from core.types import Coord, Direction, VISION_OFFSETS
from core.coords import in_map, symmetric_absolute
from core.config import (
    MAP_WIDTH, MAP_HEIGHT, TILE_EMPTY, TILE_BLOCK, TILE_ITEM, PROBE_MAX_DISTANCE,
)

# 默认生成密度
DEFAULT_BLOCK_DENSITY: float = 0.12
DEFAULT_ITEM_DENSITY: float = 0.08
PROBE_STATUS_OK: int = 1


class ArenaMap:
    """Point-symmetric ground-truth arena in absolute coordinates.

    ``grid[y, x]`` holds the server tile codes. Anything outside the arena
    reads as BLOCK, the way the server reports its outer wall.
    """
    def __init__(self, width: int = MAP_WIDTH, height: int = MAP_HEIGHT, seed: Optional[int] = None,
                 block_density: float = DEFAULT_BLOCK_DENSITY,
                 item_density: float = DEFAULT_ITEM_DENSITY,
                 spawn: Optional[Coord] = None) -> None:
        self.width = int(width)
        self.height = int(height)
        self.rng = np.random.default_rng(seed)
        self.grid: np.ndarray = np.full((self.height, self.width), TILE_EMPTY, dtype=np.int8)
        self._generate(block_density, item_density)

        if spawn is None:
            spawn = self._random_spawn()
        self.spawns: Tuple[Coord, Coord] = (spawn, symmetric_absolute(spawn, self.width, self.height))
        for s in self.spawns:
            self.grid[s[1], s[0]] = TILE_EMPTY

    def _generate(self, block_density: float, item_density: float) -> None:
        """Fill one half at random and copy it onto the mirrored half."""
        for y in range(self.height):
            for x in range(self.width):
                mx, my = symmetric_absolute((x, y), self.width, self.height)
                if (my, mx) < (y, x):
                    continue
                r = self.rng.random()
                if r < block_density:
                    code = TILE_BLOCK
                elif r < block_density + item_density:
                    code = TILE_ITEM
                else:
                    code = TILE_EMPTY
                self.grid[y, x] = code
                self.grid[my, mx] = code

    def _random_spawn(self) -> Coord:
        while True:
            x = int(self.rng.integers(0, self.width))
            y = int(self.rng.integers(0, self.height))
            if symmetric_absolute((x, y), self.width, self.height) != (x, y):
                return (x, y)

    # ------------------------------------------------------------------
    def in_map(self, coord: Coord) -> bool:
        return in_map(coord, self.width, self.height)

    def tile(self, coord: Coord) -> int:
        if not self.in_map(coord):
            return TILE_BLOCK
        return int(self.grid[coord[1], coord[0]])

    def set_tile(self, coord: Coord, code: int) -> None:
        if self.in_map(coord):
            self.grid[coord[1], coord[0]] = code

    def vision(self, center: Coord) -> List[int]:
        """Nine codes row-major from the top-left around ``center``."""
        return [self.tile((center[0] + dx, center[1] + dy)) for dx, dy in VISION_OFFSETS]

    def probe(self, origin: Coord, direction: Direction) -> List[int]:
        """[status, tile at distance 1 .. PROBE_MAX_DISTANCE]."""
        return [PROBE_STATUS_OK] + [self.tile(direction.step(origin, d))
                                    for d in range(1, PROBE_MAX_DISTANCE + 1)]
