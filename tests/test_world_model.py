"""World model: tile history, trap classification and reachability."""

from __future__ import annotations

import numpy as np
import pytest

from conftest import vision
from core.config import SEARCH_CACHE_TTL_TURNS, SPACE_SIZE_LIMIT
from core.types import Direction, TileKind, TrapReason, TrapStatus, VisionSnapshot

UP_WALL_AT_4 = [1, 0, 0, 0, 2, 0, 0, 0, 0, 0]
ALL_OPEN = [1] + [0] * 9


class TestTiles:
    def test_spawn_is_open_ground(self, world):
        assert world.get((0, 0)) is TileKind.EMPTY

    def test_block_is_permanent(self, world):
        assert world.record((1, 0), TileKind.BLOCK)
        assert not world.record((1, 0), TileKind.EMPTY)
        assert world.get((1, 0)) is TileKind.BLOCK

    def test_items_never_appear_on_known_ground(self, world):
        world.record((2, 0), TileKind.EMPTY)
        assert not world.record((2, 0), TileKind.ITEM)
        assert world.get((2, 0)) is TileKind.EMPTY

    def test_enemy_yields_to_later_observation(self, world):
        world.record((3, 0), TileKind.ENEMY)
        assert world.record((3, 0), TileKind.EMPTY)
        assert world.get((3, 0)) is TileKind.EMPTY

    def test_consumed_item_is_remembered(self, world):
        world.record((4, 0), TileKind.ITEM)
        assert world.record((4, 0), TileKind.EMPTY)
        assert (4, 0) in world.historical_items

    def test_empty_can_become_block(self, world):
        world.record((5, 0), TileKind.EMPTY)
        assert world.record((5, 0), TileKind.BLOCK)

    def test_writes_outside_frame_are_ignored(self, world):
        assert not world.record((500, 0), TileKind.EMPTY)
        assert world.get((500, 0)) is None

    def test_inferred_tiles_only_fill_unknown_cells(self, world):
        assert world.stamp_boundary([(5, 5), (0, 0)]) == 1
        assert world.boundary_cells == {(5, 5)}
        assert world.get((0, 0)) is TileKind.EMPTY

    def test_visits_and_item_statistics(self, world):
        world.mark_visit((0, 0))
        world.mark_visit((0, 0))
        assert world.visit_count((0, 0)) == 2
        assert world.item_density() == pytest.approx(0.05)
        assert world.nearest_item_distance((0, 0)) is None
        world.record((3, 4), TileKind.ITEM)
        assert world.nearest_item_distance((0, 0)) == 7


class TestPassiveTrapRules:
    def test_walled_item_is_suspected(self, world):
        world.ingest_vision((0, 0), VisionSnapshot(vision("#*#", "...", "...")))
        entry = world.trap_entry((0, -1))
        assert entry.status is TrapStatus.SUSPECTED_TRAP
        assert entry.reason is TrapReason.WALLED_ITEM

    def test_suspicion_lifted_once_item_is_gone(self, world):
        world.ingest_vision((0, 0), VisionSnapshot(vision("#*#", "...", "...")))
        world.ingest_vision((0, 0), VisionSnapshot(vision("#.#", "...", "...")))
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_SAFE

    def test_item_with_three_blocked_sides_is_a_confirmed_trap(self, world):
        world.record((0, -2), TileKind.BLOCK)
        world.ingest_vision((0, 0), VisionSnapshot(vision("#*#", "...", "...")))
        entry = world.trap_entry((0, -1))
        assert entry.status is TrapStatus.CONFIRMED_TRAP
        assert entry.reason is TrapReason.MAP_WALLED_ITEM

    def test_item_in_closed_pocket_is_suspected_dead_end(self, world):
        for c in [(0, -2), (1, -2), (2, -1)]:
            world.record(c, TileKind.BLOCK)
        world.ingest_vision((0, 0), VisionSnapshot(vision("#*.", "..#", "...")))
        entry = world.trap_entry((0, -1))
        assert entry.status is TrapStatus.SUSPECTED_TRAP
        assert entry.reason is TrapReason.DEAD_END

    def test_empty_cells_become_safe(self, world):
        world.ingest_vision((0, 0), VisionSnapshot(vision("...", "...", "...")))
        assert world.trap_status((1, 1)) is TrapStatus.CONFIRMED_SAFE

    def test_missing_vision_cells_are_skipped(self, world):
        seen = world.ingest_vision((0, 0), VisionSnapshot([0, None, 0, 0, 0, 0, 0, 0, 7]))
        assert len(seen) == 7
        assert world.get((0, -1)) is None
        assert world.get((1, 1)) is None


class TestProbeClassification:
    def test_wall_without_lateral_exit_is_a_trap(self, world):
        world.ingest_ray((0, 0), Direction.UP, UP_WALL_AT_4)
        entry = world.trap_entry((0, -1))
        assert entry.status is TrapStatus.CONFIRMED_TRAP
        assert entry.blocked_distance == 4
        assert entry.direction is Direction.UP

    def test_wall_right_behind_candidate_is_a_trap(self, world):
        world.ingest_ray((0, 0), Direction.UP, [1, 0, 2, 0, 0, 0, 0, 0, 0, 0])
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_TRAP
        assert world.trap_entry((0, -1)).blocked_distance == 2

    def test_two_cell_run_to_wall_is_safe(self, world):
        world.ingest_ray((0, 0), Direction.UP, [1, 0, 0, 2, 0, 0, 0, 0, 0, 0])
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_SAFE

    def test_lateral_exit_makes_run_safe(self, world):
        world.record((1, -2), TileKind.EMPTY)
        world.ingest_ray((0, 0), Direction.UP, UP_WALL_AT_4)
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_SAFE

    def test_open_run_is_safe(self, world):
        world.ingest_ray((0, 0), Direction.UP, ALL_OPEN)
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_SAFE

    def test_numpy_ray_is_accepted(self, world):
        world.ingest_ray((0, 0), Direction.UP, np.array(UP_WALL_AT_4))
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_TRAP

    def test_terminal_state_survives_passive_evidence(self, world):
        world.ingest_ray((0, 0), Direction.UP, UP_WALL_AT_4)
        world.ingest_vision((0, 0), VisionSnapshot(vision("...", "...", "...")))
        world.ingest_ray((0, 0), Direction.UP, ALL_OPEN)
        assert world.trap_status((0, -1)) is TrapStatus.CONFIRMED_TRAP

    def test_garbled_first_cell_leaves_target_undecided(self, world):
        world.request_probe((0, -1), Direction.UP)
        world.ingest_ray((0, 0), Direction.UP, [1, 99, 2, 0, 0, 0, 0, 0, 0, 0])
        assert world.get((0, -1)) is None
        assert world.get((0, -2)) is TileKind.BLOCK
        assert world.trap_status((0, -1)) is TrapStatus.UNKNOWN

    def test_gap_inside_window_restores_earlier_suspicion(self, world):
        world.walled_item_heuristic((0, -1), True, True)
        world.request_probe((0, -1), Direction.UP)
        world.ingest_ray((0, 0), Direction.UP, [1, 0, 99, 2, 0, 0, 0, 0, 0, 0])
        entry = world.trap_entry((0, -1))
        assert entry.status is TrapStatus.SUSPECTED_TRAP
        assert entry.reason is TrapReason.WALLED_ITEM

    def test_unusable_result_clears_pending(self, world):
        world.request_probe((0, -1), Direction.UP)
        world.ingest_ray((0, 0), Direction.UP, "garbage")
        assert world.trap_status((0, -1)) is TrapStatus.UNKNOWN
        assert world.walkable((0, -1))

    @pytest.mark.parametrize("ray", ["garbage", None, 42, [], [1], [1, 99, "x", None, -3]])
    def test_malformed_probe_is_ignored(self, world, ray):
        assert world.ingest_ray((0, 0), Direction.UP, ray) == []
        assert world.trap_status((0, -1)) is TrapStatus.UNKNOWN
        assert len(world.search_cache) == 0

    def test_long_probe_is_truncated(self, world):
        world.ingest_ray((0, 0), Direction.RIGHT, [1] + [0] * 20)
        assert world.is_known((9, 0))
        assert not world.is_known((10, 0))


class TestSearchCache:
    def test_recent_probe_answers_pass_through(self, world):
        world.ingest_ray((0, 0), Direction.UP, ALL_OPEN)
        assert world.request_probe((0, -2), Direction.UP) is TrapStatus.CONFIRMED_SAFE
        assert world.trap_entry((0, -2)).reason is TrapReason.PROBE_CACHE

    def test_stale_probe_is_purged(self, world):
        world.ingest_ray((0, 0), Direction.UP, ALL_OPEN)
        world.begin_turn(SEARCH_CACHE_TTL_TURNS + 1)
        assert len(world.search_cache) == 0
        assert world.request_probe((0, -3), Direction.UP) is TrapStatus.PENDING_SEARCH
        assert world.trap_entry((0, -3)).requested_turn == SEARCH_CACHE_TTL_TURNS + 1

    def test_pending_cells_block_paths(self, world):
        world.request_probe((1, 0), Direction.RIGHT)
        assert world.known_blocked((1, 0))
        assert not world.walkable((1, 0))


class TestReachability:
    def test_closed_pocket_is_a_dead_end(self, world):
        for c in [(-1, -1), (1, -1), (0, -2)]:
            world.record(c, TileKind.BLOCK)
        world.record((0, -1), TileKind.EMPTY)
        assert world.is_dead_end((0, -1))
        assert world.space_size((0, -1)) == 1

    def test_open_area_is_not_a_dead_end(self, world):
        assert not world.is_dead_end((0, 1))
        assert world.space_size((0, 1)) > SPACE_SIZE_LIMIT

    def test_cached_answer_refreshes_after_world_change(self, world):
        assert not world.is_dead_end((0, -1))
        for c in [(-1, -1), (1, -1), (0, -2)]:
            world.record(c, TileKind.BLOCK)
        assert world.is_dead_end((0, -1))
