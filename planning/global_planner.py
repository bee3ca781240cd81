# ================================
# file: planning/global_planner.py
# ================================
from __future__ import annotations
from typing import Dict, Optional, Sequence, Tuple
import heapq, itertools

from core.types import Coord, Direction, TileKind
from core.coords import manhattan
from core.config import (
    ASTAR_MAX_EXPANSIONS, ASTAR_STEP_COST, ASTAR_VISIT_PENALTY, ASTAR_TURN_PENALTY,
    ASTAR_ITEM_AVOID_PENALTY, ENEMY_PROXIMITY_PENALTIES,
    ENEMY_CELL_PROBABILITY_MIN, ENEMY_CELL_PROBABILITY_WEIGHT,
    ENEMY_NEIGHBOR_PROBABILITY_MIN, ENEMY_NEIGHBOR_PROBABILITY_WEIGHT, LOG_TO_CONSOLE,
)
from planning.goals import Goal, as_goal


class AStarPlanner:
    """Grid 4-neighbour A* over the world model that returns only the first step.
    Walkability comes from ``world.walkable`` (traps, blocks, provably
    off-map cells are impassable; unknown cells are optimistic).
    Edge cost = step + enemy proximity + revisits + heading changes.
    Search gives up after a fixed number of node expansions.
    """
    def __init__(self, world, belief=None, logger_func=None, log_file=None,
                 max_expansions: int = ASTAR_MAX_EXPANSIONS,
                 visit_penalty: float = ASTAR_VISIT_PENALTY,
                 turn_penalty: float = ASTAR_TURN_PENALTY,
                 item_penalty: float = ASTAR_ITEM_AVOID_PENALTY,
                 enemy_penalties: Optional[Dict[int, float]] = None) -> None:
        self.world = world
        self.belief = belief
        self.logger_func = logger_func
        self.log_file = log_file
        self.max_expansions = int(max_expansions)
        self.VISIT_PENALTY = float(visit_penalty)
        # 转弯惩罚：同等步长下偏好直行
        self.TURN_PENALTY = float(turn_penalty)
        self.ITEM_PENALTY = float(item_penalty)
        self.enemy_penalties = dict(ENEMY_PROXIMITY_PENALTIES if enemy_penalties is None else enemy_penalties)
        self.last_expansions = 0

    def _log_debug(self, message: str) -> None:
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, message, "A*")
        elif LOG_TO_CONSOLE:
            print(f"[A*_DEBUG] {message}")

    # ----------------- 代价函数 -----------------
    def enemy_penalty(self, coord: Coord, enemies: Sequence[Coord]) -> float:
        penalty = 0.0
        if enemies and self.enemy_penalties:
            dist = min(manhattan(coord, e) for e in enemies)
            penalty += self.enemy_penalties.get(dist, 0.0)
        if self.belief is not None and self.enemy_penalties:
            p = self.belief.probability(coord)
            if p > ENEMY_CELL_PROBABILITY_MIN:
                penalty += p * ENEMY_CELL_PROBABILITY_WEIGHT
            near = max(self.belief.probability(d.step(coord)) for d in Direction)
            if near > ENEMY_NEIGHBOR_PROBABILITY_MIN:
                penalty += near * ENEMY_NEIGHBOR_PROBABILITY_WEIGHT
        return penalty

    def edge_cost(self, nxt: Coord, move: Direction, heading: Optional[Direction],
                  enemies: Sequence[Coord], goal: Goal, avoid_items: bool) -> float:
        cost = ASTAR_STEP_COST
        cost += self.enemy_penalty(nxt, enemies)
        cost += self.world.visit_count(nxt) * self.VISIT_PENALTY
        if heading is not None and move is not heading:
            cost += self.TURN_PENALTY
        if avoid_items and self.world.get(nxt) is TileKind.ITEM and not goal(nxt):
            cost += self.ITEM_PENALTY
        return cost

    # ----------------- 主函数 -----------------
    def _search(self, start: Coord, goal: Goal, heading: Optional[Direction],
                enemies: Sequence[Coord], avoid_items: bool) -> Optional[Tuple[Coord, Dict, Dict]]:
        tie = itertools.count()
        g: Dict[Coord, float] = {start: 0.0}
        parent: Dict[Coord, Coord] = {}
        facing: Dict[Coord, Optional[Direction]] = {start: heading}
        closed = set()
        openq = [(goal.heuristic(start), next(tie), start)]
        expansions = 0

        while openq:
            _, _, cur = heapq.heappop(openq)
            if cur in closed:
                continue
            closed.add(cur)
            if cur != start and goal(cur):
                self.last_expansions = expansions
                return cur, g, parent
            expansions += 1
            if expansions > self.max_expansions:
                self.last_expansions = expansions
                self._log_debug(f"node ceiling {self.max_expansions} reached from {start}")
                return None
            for move in Direction:
                nxt = move.step(cur)
                if nxt in closed or not self.world.walkable(nxt):
                    continue
                cost = g[cur] + self.edge_cost(nxt, move, facing[cur], enemies, goal, avoid_items)
                if cost < g.get(nxt, float("inf")):
                    g[nxt] = cost
                    parent[nxt] = cur
                    facing[nxt] = move
                    heapq.heappush(openq, (cost + goal.heuristic(nxt), next(tie), nxt))

        self.last_expansions = expansions
        return None

    def first_step(self, start: Coord, goal, heading: Optional[Direction] = None,
                   enemies: Sequence[Coord] = (), avoid_items: bool = False) -> Optional[Direction]:
        """Direction of the first move on the cheapest route to any goal cell, or None."""
        found = self._search(start, as_goal(goal), heading, list(enemies), avoid_items)
        if found is None:
            return None
        cur, _, parent = found
        while parent[cur] != start:
            cur = parent[cur]
        return Direction.from_delta(cur[0] - start[0], cur[1] - start[1])

    def path_cost(self, start: Coord, target: Coord, heading: Optional[Direction] = None,
                  enemies: Sequence[Coord] = ()) -> Optional[float]:
        """Accumulated edge cost to ``target``; None when unreachable within the ceiling."""
        if target == start:
            return 0.0
        from planning.goals import TargetGoal
        found = self._search(start, TargetGoal(target), heading, list(enemies), False)
        if found is None:
            return None
        cur, g, _ = found
        return g[cur]
