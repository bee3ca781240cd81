# ================================
# file: planning/goals.py
# ================================
"""Goal predicates for the A* planner.

A goal is any callable ``coord -> bool``. Goal objects may also provide
``heuristic(coord)``; it must never overestimate the remaining step count,
otherwise the planner loses its shortest-route guarantee.
"""
from __future__ import annotations
from typing import Callable, Iterable

from core.types import Coord, TileKind
from core.coords import manhattan
from core.config import ASTAR_ITEM_HEURISTIC_WEIGHT


class Goal:
    def __call__(self, coord: Coord) -> bool:
        raise NotImplementedError

    def heuristic(self, coord: Coord) -> float:
        return 0.0


class PredicateGoal(Goal):
    """Wraps a plain callable; no heuristic (Dijkstra order)."""

    def __init__(self, predicate: Callable[[Coord], bool]) -> None:
        self.predicate = predicate

    def __call__(self, coord: Coord) -> bool:
        return bool(self.predicate(coord))


class TargetGoal(Goal):
    def __init__(self, target: Coord) -> None:
        self.target = (int(target[0]), int(target[1]))

    def __call__(self, coord: Coord) -> bool:
        return coord == self.target

    def heuristic(self, coord: Coord) -> float:
        return float(manhattan(coord, self.target))


class CellSetGoal(Goal):
    """Any of a fixed set of cells (frontier cells, escape cells, ...)."""

    def __init__(self, cells: Iterable[Coord]) -> None:
        self.cells = set(cells)

    def __call__(self, coord: Coord) -> bool:
        return coord in self.cells

    def heuristic(self, coord: Coord) -> float:
        if not self.cells:
            return 0.0
        return float(min(manhattan(coord, c) for c in self.cells))


class ItemGoal(Goal):
    """Nearest known item; heuristic scaled down so it stays admissible."""

    def __init__(self, world, weight: float = ASTAR_ITEM_HEURISTIC_WEIGHT) -> None:
        self.world = world
        self.weight = min(float(weight), 1.0)
        self.items = world.coords_of(TileKind.ITEM)

    def __call__(self, coord: Coord) -> bool:
        return self.world.get(coord) is TileKind.ITEM

    def heuristic(self, coord: Coord) -> float:
        if not self.items:
            return 0.0
        return self.weight * min(manhattan(coord, c) for c in self.items)


def as_goal(goal) -> Goal:
    if isinstance(goal, Goal):
        return goal
    if callable(goal):
        return PredicateGoal(goal)
    raise ValueError(f"goal must be callable, got {type(goal).__name__}")
