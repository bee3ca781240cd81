"""A* planner: shortest first step, penalties and the expansion ceiling."""

from __future__ import annotations

from collections import deque

import pytest
from hypothesis import given, settings, strategies as st

from core.coords import RelativeFrame
from core.types import Direction, TileKind
from planning import AStarPlanner, ItemGoal, TargetGoal, as_goal
from slam import EnemyBelief, WorldModel


def test_straight_route(bare_planner):
    assert bare_planner.first_step((0, 0), TargetGoal((2, 0))) is Direction.RIGHT
    assert bare_planner.path_cost((0, 0), (2, 0)) == pytest.approx(2.0)


def test_detour_around_block(world, bare_planner):
    world.record((1, 0), TileKind.BLOCK)
    assert bare_planner.first_step((0, 0), TargetGoal((3, 0))) in (Direction.UP, Direction.DOWN)
    assert bare_planner.path_cost((0, 0), (3, 0)) == pytest.approx(5.0)


def test_plain_callable_goal(bare_planner):
    assert bare_planner.first_step((0, 0), lambda c: c == (0, 2)) is Direction.DOWN


def test_non_callable_goal_is_rejected():
    with pytest.raises(ValueError):
        as_goal(5)


def test_path_cost_to_start_is_zero(bare_planner):
    assert bare_planner.path_cost((0, 0), (0, 0)) == 0.0


def test_expansion_ceiling_gives_up(world):
    planner = AStarPlanner(world, None, max_expansions=5, visit_penalty=0.0,
                           turn_penalty=0.0, enemy_penalties={})
    assert planner.first_step((0, 0), TargetGoal((20, 0))) is None
    assert planner.last_expansions > 5


def test_enclosed_start_has_no_route(world, bare_planner):
    for c in [(1, 0), (-1, 0), (0, 1), (0, -1)]:
        world.record(c, TileKind.BLOCK)
    assert bare_planner.first_step((0, 0), TargetGoal((3, 0))) is None


def test_pending_probe_cell_is_impassable(world, bare_planner):
    world.request_probe((1, 0), Direction.RIGHT)
    assert bare_planner.first_step((0, 0), TargetGoal((2, 0))) in (Direction.UP, Direction.DOWN)


def test_turn_penalty_prefers_current_heading(world):
    planner = AStarPlanner(world, None, visit_penalty=0.0, turn_penalty=0.3, enemy_penalties={})
    assert planner.first_step((0, 0), TargetGoal((1, 1)), heading=Direction.RIGHT) is Direction.RIGHT
    assert planner.first_step((0, 0), TargetGoal((1, 1)), heading=Direction.DOWN) is Direction.DOWN


def test_visible_enemy_is_avoided(world):
    planner = AStarPlanner(world)
    assert planner.first_step((0, 0), TargetGoal((2, 0)), enemies=[(1, 0)]) is not Direction.RIGHT


def test_believed_enemy_is_avoided(world, frame):
    belief = EnemyBelief(frame)
    belief.seed((1, 0))
    planner = AStarPlanner(world, belief)
    assert planner.enemy_penalty((1, 0), []) > 0.0
    assert planner.first_step((0, 0), TargetGoal((2, 0))) is not Direction.RIGHT


def test_item_avoidance_is_optional(world):
    world.record((1, 0), TileKind.ITEM)
    planner = AStarPlanner(world, None, visit_penalty=0.0, turn_penalty=0.0,
                           item_penalty=3.0, enemy_penalties={})
    assert planner.first_step((0, 0), TargetGoal((2, 0))) is Direction.RIGHT
    assert planner.first_step((0, 0), TargetGoal((2, 0)), avoid_items=True) is not Direction.RIGHT


def test_item_goal_finds_nearest_item(world, bare_planner):
    world.record((0, -3), TileKind.ITEM)
    assert bare_planner.first_step((0, 0), ItemGoal(world)) is Direction.UP


def test_item_heuristic_weight_is_capped(world):
    assert ItemGoal(world, weight=3.0).weight == 1.0


BOX = 7


def bfs_distance(world, start, target):
    dist = {start: 0}
    queue = deque([start])
    while queue:
        cur = queue.popleft()
        if cur == target:
            return dist[cur]
        for d in Direction:
            nxt = d.step(cur)
            if nxt not in dist and world.walkable(nxt):
                dist[nxt] = dist[cur] + 1
                queue.append(nxt)
    return None


@settings(max_examples=50, deadline=None)
@given(layout=st.lists(st.booleans(), min_size=BOX * BOX, max_size=BOX * BOX),
       target=st.tuples(st.integers(0, BOX - 1), st.integers(0, BOX - 1)))
def test_first_step_lies_on_a_shortest_route(layout, target):
    world = WorldModel(RelativeFrame())
    for i in range(-1, BOX + 1):
        for c in ((i, -1), (i, BOX), (-1, i), (BOX, i)):
            world.record(c, TileKind.BLOCK)
    for i, blocked in enumerate(layout):
        cell = (i % BOX, i // BOX)
        if blocked and cell not in ((0, 0), target):
            world.record(cell, TileKind.BLOCK)
    planner = AStarPlanner(world, None, visit_penalty=0.0, turn_penalty=0.0,
                           item_penalty=0.0, enemy_penalties={})

    steps = bfs_distance(world, (0, 0), target)
    step = planner.first_step((0, 0), TargetGoal(target))
    if steps is None or steps == 0:
        assert step is None
        return
    nxt = step.step((0, 0))
    assert planner.path_cost(nxt, target) + 1 == pytest.approx(steps)
    assert bfs_distance(world, nxt, target) == steps - 1
