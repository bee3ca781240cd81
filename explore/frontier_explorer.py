# ================================
# file: explore/frontier_explorer.py
# ================================
from __future__ import annotations
from typing import Optional, List, Dict, Sequence

import numpy as np
from scipy.ndimage import binary_dilation, generate_binary_structure

from core.types import Coord, Direction
from core.coords import manhattan
from core.config import (
    MAP_WIDTH, MAP_HEIGHT, TILE_UNKNOWN, TILE_EMPTY, TILE_ITEM, PROBE_MAX_DISTANCE,
    EXPLORE_BASE_PRIORITY, EXPLORE_TRULY_UNKNOWN_BONUS, EXPLORE_NEAR_EDGE_PENALTY,
    EXPLORE_EDGE_PENALTY, EXPLORE_CENTER_DISTANCE_WEIGHT, EXPLORE_UNKNOWN_NEIGHBOR_BONUS,
    EXPLORE_NEIGHBOR_VISIT_WEIGHT, EXPLORE_FROM_VISIT_WEIGHT, EXPLORE_DISTANCE_WEIGHT,
    MIN_FRONTIER_SIZE, LOG_TO_CONSOLE,
)
from planning import AStarPlanner, TargetGoal, CellSetGoal


class FrontierCandidate:
    __slots__ = ("target", "via", "priority")

    def __init__(self, target: Coord, via: Coord, priority: float) -> None:
        self.target = target      # unknown cell worth revealing
        self.via = via            # known walkable cell next to it
        self.priority = priority


class FrontierExplorer:
    """Frontier-based exploration on the spawn-relative tile grid.

    A frontier cell is known open ground (empty or item) with an unobserved
    4-neighbour that may still lie inside the arena.
    """
    def __init__(self, world, localizer, symmetry, planner: AStarPlanner,
                 map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT,
                 logger_func=None, log_file=None) -> None:
        self.world = world
        self.localizer = localizer
        self.symmetry = symmetry
        self.planner = planner
        self.W = int(map_width)
        self.H = int(map_height)
        self.logger_func = logger_func
        self.log_file = log_file
        self._struct = generate_binary_structure(2, 1)  # 4-connected

    def _log_debug(self, message: str) -> None:
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, message, "EXPLORE")
        elif LOG_TO_CONSOLE:
            print(f"[EXPLORE_DEBUG] {message}")

    # ----------------- 栅格化 -----------------
    def possible_inside_mask(self) -> np.ndarray:
        """Frame cells that some surviving origin hypothesis places inside the arena."""
        frame = self.world.frame
        mask = np.zeros(frame.shape, dtype=bool)
        b = self.localizer.outer_bounds()
        if b is None:
            return mask
        iy0, ix0 = frame.to_index((max(b["min_x"], -frame.half_w), max(b["min_y"], -frame.half_h)))
        iy1, ix1 = frame.to_index((min(b["max_x"], frame.half_w), min(b["max_y"], frame.half_h)))
        mask[iy0:iy1 + 1, ix0:ix1 + 1] = True
        return mask

    def frontier_mask(self) -> np.ndarray:
        tiles = self.world.tiles
        open_ground = (tiles == TILE_EMPTY) | (tiles == TILE_ITEM)
        unknown = (tiles == TILE_UNKNOWN) & self.possible_inside_mask()
        return open_ground & binary_dilation(unknown, structure=self._struct)

    def frontier_cells(self) -> List[Coord]:
        return self.world.frame.coords_of(self.frontier_mask())

    def has_frontier(self) -> bool:
        return int(self.frontier_mask().sum()) >= MIN_FRONTIER_SIZE

    def frontier_goal(self) -> CellSetGoal:
        """Goal predicate: any frontier cell."""
        return CellSetGoal(self.frontier_cells())

    # ----------------- 探索优先度 -----------------
    def _unknown_neighbors(self, coord: Coord) -> List[Coord]:
        out = []
        for d in Direction:
            n = d.step(coord)
            if not self.world.is_known(n) and not self.localizer.definitely_outside(n):
                out.append(n)
        return out

    def exploration_priority(self, coord: Coord) -> float:
        """Value of revealing ``coord``; 0 for known cells, -inf off the arena."""
        if not self.world.frame.contains(coord) or self.localizer.definitely_outside(coord):
            return float("-inf")
        if self.world.is_known(coord):
            return 0.0
        p = EXPLORE_BASE_PRIORITY
        if self.symmetry.is_truly_unknown(coord):
            p += EXPLORE_TRULY_UNKNOWN_BONUS
        if self.world.near_boundary(coord):
            p -= EXPLORE_NEAR_EDGE_PENALTY
        abs_coord = self.localizer.to_absolute(coord)
        if abs_coord is not None:
            ax, ay = abs_coord
            if ax in (0, self.W - 1) or ay in (0, self.H - 1):
                p -= EXPLORE_EDGE_PENALTY
            center = (self.W // 2, self.H // 2)
            p -= manhattan(abs_coord, center) * EXPLORE_CENTER_DISTANCE_WEIGHT
        for d in Direction:
            n = d.step(coord)
            tile = self.world.get(n)
            if tile is None:
                p += EXPLORE_UNKNOWN_NEIGHBOR_BONUS
            elif tile.walkable:
                p -= self.world.visit_count(n) * EXPLORE_NEIGHBOR_VISIT_WEIGHT
        return p

    def best_frontier(self, position: Coord) -> Optional[FrontierCandidate]:
        best: Optional[FrontierCandidate] = None
        for via in self.frontier_cells():
            penalty = (self.world.visit_count(via) * EXPLORE_FROM_VISIT_WEIGHT +
                       manhattan(position, via) * EXPLORE_DISTANCE_WEIGHT)
            for target in self._unknown_neighbors(via):
                score = self.exploration_priority(target) - penalty
                if best is None or score > best.priority:
                    best = FrontierCandidate(target, via, score)
        return best

    # ----------------- 下一步 -----------------
    def next_step(self, position: Coord, heading: Optional[Direction] = None,
                  enemies: Sequence[Coord] = ()) -> Optional[Direction]:
        """First move toward the most valuable frontier, with two fallbacks."""
        best = self.best_frontier(position)
        if best is not None:
            if best.via == position:
                d = Direction.from_delta(best.target[0] - position[0], best.target[1] - position[1])
                if d is not None and self.world.walkable(best.target):
                    return d
            else:
                step = self.planner.first_step(position, TargetGoal(best.via), heading, enemies)
                if step is not None:
                    return step

        cells = self.frontier_cells()
        truly = [c for c in cells if any(self.symmetry.is_truly_unknown(n) for n in self._unknown_neighbors(c))]
        for group in (truly, cells):
            group = [c for c in group if c != position]
            if not group:
                continue
            step = self.planner.first_step(position, CellSetGoal(group), heading, enemies)
            if step is not None:
                return step
        self._log_debug(f"no reachable frontier from {position}")
        return None

    def unknown_in_line(self, position: Coord, direction: Direction) -> int:
        count = 0
        for dist in range(1, PROBE_MAX_DISTANCE + 1):
            c = direction.step(position, dist)
            if not self.world.is_known(c) and not self.localizer.definitely_outside(c):
                count += 1
        return count

    def best_probe_direction(self, position: Coord) -> Optional[Direction]:
        """Probe direction revealing the most unknown cells (localizer preference on ties)."""
        counts: Dict[Direction, int] = {d: self.unknown_in_line(position, d) for d in Direction}
        top = max(counts.values())
        if top == 0:
            return None
        tied = [d for d in Direction if counts[d] == top]
        preferred = self.localizer.best_search_direction()
        if preferred in tied:
            return preferred
        return tied[0]
