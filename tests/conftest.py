"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from core.coords import RelativeFrame
from core.types import Direction, TileKind
from planning import AStarPlanner
from sim import ArenaMap, SimBot
from slam import WorldModel, WorldState

E, N, B, I = (int(TileKind.EMPTY), int(TileKind.ENEMY), int(TileKind.BLOCK), int(TileKind.ITEM))


def vision(*rows: str) -> list:
    """Build a 9-code vision list from three 3-character rows ('.', 'E', '#', '*')."""
    codes = {".": E, "E": N, "#": B, "*": I}
    return [codes[ch] for row in rows for ch in row]


def localize_in_corner(state: WorldState, bot: SimBot) -> None:
    """Look, then fire rays in all four directions from a top-left corner spawn."""
    state.begin_turn()
    state.ingest(bot.look())
    for d in (Direction.RIGHT, Direction.DOWN, Direction.LEFT, Direction.UP):
        state.ingest_probe(d, bot.search(d))


@pytest.fixture
def frame() -> RelativeFrame:
    return RelativeFrame()


@pytest.fixture
def world(frame: RelativeFrame) -> WorldModel:
    """World model with no localizer: every unknown cell is optimistic."""
    return WorldModel(frame)


@pytest.fixture
def bare_planner(world: WorldModel) -> AStarPlanner:
    """Planner with every penalty switched off: pure step counting."""
    return AStarPlanner(world, None, visit_penalty=0.0, turn_penalty=0.0,
                        item_penalty=0.0, enemy_penalties={})


@pytest.fixture
def state() -> WorldState:
    return WorldState()


@pytest.fixture
def open_arena() -> ArenaMap:
    """Arena without interior blocks or items, spawn in the top-left corner."""
    return ArenaMap(block_density=0.0, item_density=0.0, spawn=(0, 0), seed=0)


@pytest.fixture
def open_bot(open_arena: ArenaMap) -> SimBot:
    return SimBot(open_arena)
