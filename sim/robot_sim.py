# ================================
# file: sim/robot_sim.py
# ================================
from __future__ import annotations
from typing import List, Optional
from core.types import Coord, Direction
from core.config import TILE_BLOCK, TILE_ENEMY, TILE_ITEM, TILE_EMPTY
from .arena_map import ArenaMap


class SimBot:
    """Ground-truth body of one player on an ``ArenaMap``.

    Applies walk/put the way the game server does (an item picked up leaves a
    block on the cell just left) and renders sensor readings with the
    opponent overlaid as ENEMY.
    Thread-safety: assume single-threaded calls from the test/main loop.
    """
    def __init__(self, arena: ArenaMap, spawn: Optional[Coord] = None,
                 enemy: Optional[Coord] = None) -> None:
        self.arena = arena
        self.position: Coord = spawn if spawn is not None else arena.spawns[0]
        self.spawn: Coord = self.position
        self.enemy: Optional[Coord] = enemy
        self.items = 0

    def _overlay(self, coord: Coord, code: int) -> int:
        if self.enemy is not None and coord == self.enemy:
            return TILE_ENEMY
        return code

    def look(self) -> List[int]:
        cx, cy = self.position
        codes = self.arena.vision(self.position)
        out = []
        for i, code in enumerate(codes):
            dx, dy = i % 3 - 1, i // 3 - 1
            out.append(self._overlay((cx + dx, cy + dy), code))
        return out

    def search(self, direction: Direction) -> List[int]:
        ray = self.arena.probe(self.position, direction)
        return [ray[0]] + [self._overlay(direction.step(self.position, d), code)
                           for d, code in enumerate(ray[1:], start=1)]

    def walk(self, direction: Direction) -> bool:
        target = direction.step(self.position)
        code = self.arena.tile(target)
        if code == TILE_BLOCK or target == self.enemy:
            return False
        if code == TILE_ITEM:
            self.arena.set_tile(target, TILE_EMPTY)
            self.arena.set_tile(self.position, TILE_BLOCK)
            self.items += 1
        self.position = target
        return True

    def put(self, direction: Direction) -> bool:
        target = direction.step(self.position)
        if not self.arena.in_map(target) or self.arena.tile(target) == TILE_BLOCK or target == self.enemy:
            return False
        self.arena.set_tile(target, TILE_BLOCK)
        return True

    def relative(self, abs_coord: Coord) -> Coord:
        """Absolute -> spawn-relative, for checking the agent's answers."""
        return (abs_coord[0] - self.spawn[0], abs_coord[1] - self.spawn[1])
