"""Origin localizer: hypothesis elimination, wall locks and recovery."""

from __future__ import annotations

from hypothesis import given, settings, strategies as st

from core.types import Direction, Observation, TileKind
from sim import ArenaMap, SimBot
from slam import OriginLocalizer, WorldState


def blocks(*coords):
    return [Observation(c, TileKind.BLOCK, 1) for c in coords]


def empties(*coords):
    return [Observation(c, TileKind.EMPTY) for c in coords]


def behind_walls(*coords):
    return [Observation(c, TileKind.BLOCK, 5, False) for c in coords]


# Left wall at x=-4 and top wall at y=-5 for an origin of (3, 4)
CORNER_RUNS = blocks((-4, -1), (-4, 0), (-4, 1), (-4, -5), (-3, -5), (-2, -5))
OPEN_PATCH = empties(*[(x, y) for x in range(-3, 3) for y in range(-4, 1)])


def localized_at_origin() -> OriginLocalizer:
    loc = OriginLocalizer()
    loc.update(blocks((-1, 2), (15, 2), (2, -1), (2, 17)))
    return loc


class TestHardPruning:
    def test_open_cell_bounds_origin(self):
        loc = OriginLocalizer()
        loc.update(empties((5, 0)))
        xs = loc.possible_xs()
        assert xs.min() == 0 and xs.max() == 9

    def test_blocks_do_not_prune(self):
        loc = OriginLocalizer()
        loc.update(blocks((-20, 0)))
        assert loc.candidates_count() == 15 * 17

    def test_bounds_reflect_candidates(self):
        loc = OriginLocalizer()
        loc.update(empties((5, 0), (0, -3)))
        inner = loc.estimated_bounds()
        outer = loc.outer_bounds()
        assert inner["min_x"] == 0 and inner["max_x"] == 5
        assert outer["min_x"] == -9 and outer["max_x"] == 14
        assert outer["min_y"] == -16 and outer["max_y"] == 13
        assert loc.definitely_inside((3, 0))
        assert loc.definitely_outside((-10, 0))


class TestWallLocks:
    def test_forty_empty_turns_do_not_lock(self):
        loc = OriginLocalizer()
        ring = empties(*[(dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)])
        for _ in range(40):
            loc.update(ring)
        assert not loc.is_localized()
        assert loc.candidates_count() == 13 * 15

    def test_opposing_walls_lock_x(self):
        loc = OriginLocalizer()
        loc.update(blocks((-1, 3), (15, 3)))
        assert loc.confirmed_x == 0
        assert list(loc.possible_xs()) == [0]
        assert loc.confirmed_y is None
        assert not loc.is_localized()

    def test_opposing_walls_lock_y(self):
        loc = OriginLocalizer()
        loc.update(blocks((3, -4), (3, 14)))
        assert loc.confirmed_y == 3

    def test_opposing_walls_on_both_axes_localize(self):
        loc = localized_at_origin()
        assert loc.is_localized()
        assert loc.origin == (0, 0)
        assert loc.to_absolute((3, 4)) == (3, 4)
        assert loc.evidence_log[-1]["type"] == "opposing_walls_y"

    def test_localized_event_fires_once(self):
        loc = localized_at_origin()
        assert loc.consume_localized_event()
        assert not loc.consume_localized_event()

    def test_backed_corner_runs_lock_origin(self):
        loc = OriginLocalizer()
        loc.update(CORNER_RUNS + behind_walls((-5, 0), (-6, 0), (-3, -6), (-3, -7)) + OPEN_PATCH)
        assert loc.origin == (3, 4)
        assert loc.evidence_log[-1]["type"] == "corner"

    def test_corner_runs_without_depth_do_not_lock(self):
        loc = OriginLocalizer()
        loc.update(CORNER_RUNS + OPEN_PATCH)
        assert not loc.is_localized()
        assert loc.candidates_count() > 1

    def test_corner_shape_in_first_look_does_not_lock(self):
        loc = OriginLocalizer()
        loc.update(blocks((-1, -1), (0, -1), (1, -1), (-1, 0), (-1, 1)) +
                   empties((0, 0), (1, 0), (0, 1), (1, 1)))
        assert not loc.is_localized()

    def test_spawn_row_blocks_form_no_run(self):
        loc = OriginLocalizer()
        loc.update(blocks((-1, 0), (1, 0), (0, -1), (0, 1)))
        assert not loc.is_localized()

    def test_best_search_direction_prefers_widest_axis(self):
        loc = OriginLocalizer()
        loc.update(blocks((-1, 3), (15, 3)))
        assert loc.best_search_direction() in (Direction.UP, Direction.DOWN)


class TestRecovery:
    def test_contradictions_after_lock_force_reset(self):
        loc = localized_at_origin()
        for x in (-1, -2, -3):
            loc.update(empties((x, 5)))
        assert loc.reset_count == 1
        assert not loc.is_localized()
        assert loc.possible_xs().min() == 3

    def test_reset_keeps_cells_seen_open_before_they_were_blocked(self):
        loc = OriginLocalizer()
        loc.update(empties((5, 0)))
        loc.update(blocks((5, 0)))
        loc.reset()
        assert loc.possible_xs().max() == 9

    def test_single_contradiction_is_tolerated(self):
        loc = localized_at_origin()
        loc.update(empties((-1, 5)))
        assert loc.is_localized()
        assert loc.contradiction_count == 1


@settings(max_examples=25, deadline=None)
@given(seed=st.integers(min_value=0, max_value=10_000), moves=st.lists(
    st.sampled_from(list(Direction)), min_size=1, max_size=60))
def test_true_origin_is_never_ruled_out(seed, moves):
    arena = ArenaMap(seed=seed)
    bot = SimBot(arena)
    state = WorldState()
    for i, move in enumerate(moves):
        state.begin_turn()
        state.ingest(bot.look())
        if i % 5 == 0:
            state.ingest_probe(move, bot.search(move))
        if state.is_localized():
            assert state.localizer.origin == bot.spawn
        else:
            assert bot.spawn in state.localizer.candidates()
        state.record_walk(move, bot.walk(move))


def test_exploration_phase_ends_after_enough_observations():
    loc = OriginLocalizer()
    assert loc.exploration_phase()
    loc.update(empties(*[(x, y) for x in range(5) for y in range(10)]))
    assert not loc.exploration_phase()
