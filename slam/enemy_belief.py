# ================================
# file: slam/enemy_belief.py
# ================================
"""
Enemy Belief - Probability Field over the Opponent's Position

When the opponent is visible the field collapses to its observed cell(s).
When it is not, the mass inside the current view is removed and the rest
spreads one step per turn to walkable neighbours with a small decay, so
stale information fades instead of pinning the planner forever.
"""
from __future__ import annotations
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from core.types import Coord, Direction
from core.coords import RelativeFrame, manhattan
from core.config import (
    TILE_UNKNOWN, TILE_EMPTY, TILE_ITEM, LOG_TO_CONSOLE,
    ENEMY_DIFFUSION_DECAY, ENEMY_PROBABILITY_THRESHOLD,
    ENEMY_SIGHTING_HISTORY, ENEMY_RECENT_SIGHTING_TURNS,
)

_MIN_SIGHTINGS_FOR_PATTERN: int = 3


class Sighting:
    __slots__ = ("turn", "pos", "my_pos")

    def __init__(self, turn: int, pos: Coord, my_pos: Coord) -> None:
        self.turn = turn
        self.pos = pos
        self.my_pos = my_pos


def _shift(a: np.ndarray, dy: int, dx: int) -> np.ndarray:
    """out[y, x] = a[y - dy, x - dx]; zero-filled at the borders."""
    out = np.zeros_like(a)
    h, w = a.shape
    ys_dst = slice(max(dy, 0), h + min(dy, 0))
    xs_dst = slice(max(dx, 0), w + min(dx, 0))
    ys_src = slice(max(-dy, 0), h + min(-dy, 0))
    xs_src = slice(max(-dx, 0), w + min(-dx, 0))
    out[ys_dst, xs_dst] = a[ys_src, xs_src]
    return out


class EnemyBelief:
    """Per-cell probability of the opponent's location in the relative frame."""

    def __init__(self, frame: RelativeFrame, logger_func=None, log_file=None) -> None:
        self.frame = frame
        self.logger_func = logger_func
        self.log_file = log_file
        self.field = frame.full(0.0, np.float64)
        self.sightings: deque = deque(maxlen=ENEMY_SIGHTING_HISTORY)
        self.last_known: Optional[Coord] = None
        self.seeded = False

    # ------------------------------------------------------------------
    def probability(self, coord: Coord) -> float:
        if not self.frame.contains(coord):
            return 0.0
        return float(self.field[self.frame.to_index(coord)])

    def total_mass(self) -> float:
        return float(self.field.sum())

    def seed(self, coord: Coord) -> bool:
        """Place the one-time prior (mirror of our spawn) if nothing was seen yet."""
        if self.seeded or self.last_known is not None or not self.frame.contains(coord):
            return False
        self.field[:] = 0.0
        self.field[self.frame.to_index(coord)] = 1.0
        self.seeded = True
        self._log_debug(f"Belief seeded at symmetric start {coord}")
        return True

    def update(self, turn: int, my_pos: Coord, visible: Sequence[Coord],
               enemies: Sequence[Coord], tiles: np.ndarray) -> None:
        """One turn of tracking.

        ``visible`` are the cells actually reported this turn, ``enemies`` the
        cells where the opponent was seen and ``tiles`` the world tile grid
        used for walkability.
        """
        if enemies:
            self._observe(turn, my_pos, enemies)
        else:
            self._clear(visible)
            self._diffuse(tiles)
            self._clear(visible)

    def _observe(self, turn: int, my_pos: Coord, enemies: Sequence[Coord]) -> None:
        self.last_known = enemies[0]
        self.sightings.append(Sighting(turn, enemies[0], my_pos))
        self.field[:] = 0.0
        for c in enemies:
            if self.frame.contains(c):
                self.field[self.frame.to_index(c)] = 1.0

    def _clear(self, cells: Iterable[Coord]) -> None:
        for c in cells:
            if self.frame.contains(c):
                self.field[self.frame.to_index(c)] = 0.0

    def _diffuse(self, tiles: np.ndarray) -> None:
        """Split each cell's decayed mass evenly over itself and its walkable neighbours."""
        walk = (tiles == TILE_UNKNOWN) | (tiles == TILE_EMPTY) | (tiles == TILE_ITEM)
        active = np.where(self.field > ENEMY_PROBABILITY_THRESHOLD, self.field, 0.0)
        if not active.any():
            self.field[:] = 0.0
            return
        shifts = [(d.delta[1], d.delta[0]) for d in Direction]
        # neighbours of (y, x) that are walkable: walk[y + dy, x + dx]
        options = np.ones_like(self.field)
        for dy, dx in shifts:
            options += _shift(walk.astype(np.float64), -dy, -dx)
        share = active * ENEMY_DIFFUSION_DECAY / options
        out = share.copy()
        for dy, dx in shifts:
            out += _shift(share, dy, dx) * walk
        self.field = out

    # ------------------------------------------------------------------
    def predicted_position(self, turn: int) -> Optional[Coord]:
        """Recent sighting, else the field's arg-max, else the last sighting."""
        if self.last_known is None:
            return None
        if self.sightings and turn - self.sightings[-1].turn <= ENEMY_RECENT_SIGHTING_TURNS:
            return self.last_known
        if self.field.max() > 0.0:
            iy, ix = np.unravel_index(int(np.argmax(self.field)), self.field.shape)
            return self.frame.from_index(iy, ix)
        return self.last_known

    def movement_pattern(self) -> Optional[Direction]:
        """Most frequent axis-aligned step between consecutive sightings."""
        if len(self.sightings) < _MIN_SIGHTINGS_FOR_PATTERN:
            return None
        counts: Dict[Direction, int] = {}
        seq = list(self.sightings)
        for prev, cur in zip(seq, seq[1:]):
            dx = int(np.sign(cur.pos[0] - prev.pos[0]))
            dy = int(np.sign(cur.pos[1] - prev.pos[1]))
            d = Direction.from_delta(dx, dy)
            if d is not None:
                counts[d] = counts.get(d, 0) + 1
        if not counts:
            return None
        return max(counts, key=lambda d: counts[d])

    def approaching(self) -> bool:
        """Distance to us shrank across the last few sightings."""
        recent: List[Sighting] = list(self.sightings)[-3:]
        if len(recent) < 2:
            return False
        first, last = recent[0], recent[-1]
        return manhattan(last.pos, last.my_pos) < manhattan(first.pos, first.my_pos)

    def _log_debug(self, msg: str) -> None:
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, msg, "Enemy")
        elif LOG_TO_CONSOLE:
            print(f"[Enemy] {msg}")
