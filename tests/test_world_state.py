"""WorldState: the per-turn interface wired against the simulated arena."""

from __future__ import annotations

import pytest

from appio import DataLogger
from conftest import localize_in_corner, vision
from core.config import ENEMY_DIFFUSION_DECAY
from core.types import Direction, TileKind, TrapStatus
from planning import TargetGoal
from sim import ArenaMap, SimBot
from slam import WorldState

UP_WALL_AT_4 = [1, 0, 0, 0, 2, 0, 0, 0, 0, 0]
ALL_OPEN = [1] + [0] * 9


def play(state: WorldState, bot: SimBot, moves) -> None:
    for move in moves:
        state.record_walk(move, bot.walk(move))
        state.begin_turn()
        state.ingest(bot.look())


class TestLocalization:
    def test_corner_look_alone_does_not_localize(self, state, open_bot):
        state.begin_turn()
        assert not state.ingest(open_bot.look())

    def test_corner_localizes_once_both_walls_show_depth(self, state, open_bot):
        state.begin_turn()
        state.ingest(open_bot.look())
        for d in (Direction.RIGHT, Direction.DOWN, Direction.LEFT):
            state.ingest_probe(d, open_bot.search(d))
        assert not state.is_localized()
        state.ingest_probe(Direction.UP, open_bot.search(Direction.UP))
        assert state.is_localized()
        assert state.absolute_of((2, 3)) == (2, 3)
        assert state.relative_of((5, 5)) == (5, 5)

    def test_boundary_ring_is_stamped(self, state, open_bot):
        localize_in_corner(state, open_bot)
        assert state.tile_knowledge((15, 4)) == (TileKind.BLOCK, TrapStatus.UNKNOWN)
        assert (15, 4) in state.world.boundary_cells

    def test_enemy_seeded_at_mirrored_spawn(self, state, open_bot):
        localize_in_corner(state, open_bot)
        assert state.enemy.seeded
        assert state.enemy_probability((14, 16)) == 1.0
        state.begin_turn()
        state.ingest(open_bot.look())
        assert state.enemy.total_mass() == pytest.approx(ENEMY_DIFFUSION_DECAY)
        assert state.predicted_enemy_position() is None

    def test_walk_to_corner_localizes(self, state):
        arena = ArenaMap(block_density=0.0, item_density=0.0, spawn=(3, 4), seed=1)
        bot = SimBot(arena)
        state.begin_turn()
        state.ingest(bot.look())
        play(state, bot, [Direction.LEFT] * 3 + [Direction.UP] * 3)
        assert not state.is_localized()
        play(state, bot, [Direction.UP])
        assert not state.is_localized()
        state.ingest_probe(Direction.LEFT, bot.search(Direction.LEFT))
        state.ingest_probe(Direction.UP, bot.search(Direction.UP))
        assert state.is_localized()
        assert state.absolute_of((0, 0)) == (3, 4)
        assert state.absolute_of(state.position) == (0, 0)

    def test_forty_quiet_turns_do_not_lock(self, state):
        for _ in range(40):
            state.begin_turn()
            state.ingest(vision("...", "...", "..."))
        assert not state.is_localized()
        assert state.absolute_of((1, 1)) is None


class TestProbes:
    def test_probe_confirms_trap(self, state):
        assert state.request_probe(Direction.UP)
        assert state.tile_knowledge((0, -1)) == (None, TrapStatus.PENDING_SEARCH)
        state.ingest_probe(Direction.UP, UP_WALL_AT_4)
        assert state.tile_knowledge((0, -1)) == (TileKind.EMPTY, TrapStatus.CONFIRMED_TRAP)
        assert not state.request_probe(Direction.UP)

    def test_cached_probe_skips_next_probe(self, state):
        state.ingest_probe(Direction.UP, ALL_OPEN)
        state.record_walk(Direction.UP, True)
        assert not state.request_probe(Direction.UP)
        assert state.tile_knowledge((0, -2))[1] is TrapStatus.CONFIRMED_SAFE

    def test_garbage_probe_changes_nothing(self, state):
        assert state.ingest_probe(Direction.LEFT, "???") == []
        assert state.tile_knowledge((-1, 0)) == (None, TrapStatus.UNKNOWN)


class TestOwnActions:
    def test_item_pickup_leaves_self_placed_block(self, state):
        state.ingest(vision(".*.", "...", "..."))
        assert state.record_walk(Direction.UP, True)
        assert state.position == (0, -1)
        assert state.items_collected == 1
        assert state.tile_knowledge((0, 0))[0] is TileKind.BLOCK
        assert (0, 0) in state.world.self_placed
        assert state.tile_knowledge((0, -1))[0] is TileKind.EMPTY
        assert state.world.visit_count((0, -1)) == 1

    def test_failed_walk_keeps_position(self, state):
        assert not state.record_walk(Direction.LEFT, False)
        assert state.position == (0, 0)
        assert state.last_direction is Direction.LEFT

    def test_put_records_self_placed_block(self, state):
        assert state.record_put(Direction.RIGHT, True)
        assert state.tile_knowledge((1, 0))[0] is TileKind.BLOCK
        assert (1, 0) in state.world.self_placed


class TestQueries:
    def test_query_item_goal(self, state):
        state.ingest(vision("...", "...", "..."))
        state.world.record((3, 0), TileKind.ITEM)
        assert state.query(state.item_goal()) is Direction.RIGHT

    def test_query_plain_predicate(self, state):
        state.ingest(vision("...", "...", "..."))
        assert state.query(lambda c: c == (0, 2)) is Direction.DOWN

    def test_visible_enemy_is_tracked(self, state):
        state.begin_turn()
        state.ingest(vision("...", "..E", "..."))
        assert state.visible_enemies == [(1, 0)]
        assert state.predicted_enemy_position() == (1, 0)
        assert state.enemy_probability((1, 0)) == 1.0
        assert state.query(TargetGoal((2, 0))) is not Direction.RIGHT

    def test_explore_step_moves_somewhere(self, state):
        state.ingest(vision("...", "...", "..."))
        assert state.explore_step() in tuple(Direction)


def test_recorder_collects_turns():
    recorder = DataLogger()
    state = WorldState(recorder=recorder)
    state.begin_turn()
    state.ingest(vision("...", "...", "..."))
    state.ingest_probe(Direction.UP, ALL_OPEN)
    assert len(recorder.visions) == 1
    assert len(recorder.probes) == 1
    assert len(recorder.poses) == 1
    assert len(recorder.beliefs) == 1


def test_simulated_run_completes(tmp_path):
    from main import run
    npz = tmp_path / "run.npz"
    state = run(turns=25, seed=3, npz_path=str(npz), log_dir=str(tmp_path))
    assert state.turn == 25
    assert npz.exists()
    assert any(p.suffix == ".log" for p in tmp_path.iterdir())
