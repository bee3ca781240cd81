# ================================
# file: slam/world_state.py
# ================================
"""
World State - the Agent's Single Owned Knowledge Aggregate

Wires the world model, origin localizer, symmetry inference, enemy belief,
A* planner and frontier explorer together and exposes the per-turn
interface a strategy layer talks to.

Usage:
    state = WorldState()
    state.begin_turn()
    state.ingest(vision_tiles)
    if state.request_probe(Direction.UP):
        state.ingest_probe(Direction.UP, probe_result)
    step = state.query(state.item_goal())
    state.record_walk(step, success=True)
"""
from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from core.types import Coord, Direction, Observation, TileKind, TrapStatus, VisionSnapshot
from core.coords import RelativeFrame, boundary_ring, chebyshev, symmetric_absolute
from core.config import MAP_WIDTH, MAP_HEIGHT, FRAME_MARGIN, LOG_TO_CONSOLE
from slam.world_model import WorldModel
from slam.localizer import OriginLocalizer
from slam.symmetry import SymmetryInference
from slam.enemy_belief import EnemyBelief
from planning import AStarPlanner, ItemGoal
from explore import FrontierExplorer


class WorldState:
    def __init__(self, map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT,
                 logger_func=None, log_file=None, recorder=None) -> None:
        """
        Args:
            map_width, map_height: Arena size in tiles
            logger_func: Logger function (``appio.logger.log_to_file``)
            log_file: Log file handle
            recorder: Optional ``appio.logger.DataLogger`` fed every turn
        """
        self.W = int(map_width)
        self.H = int(map_height)
        self.logger_func = logger_func
        self.log_file = log_file
        self.recorder = recorder

        self.frame = RelativeFrame(self.W, self.H, FRAME_MARGIN)
        self.localizer = OriginLocalizer(self.W, self.H, logger_func, log_file)
        self.world = WorldModel(self.frame, self.localizer, None, logger_func, log_file)
        self.symmetry = SymmetryInference(self.localizer, self.world, self.W, self.H,
                                          logger_func=logger_func, log_file=log_file)
        self.world.symmetry = self.symmetry
        self.enemy = EnemyBelief(self.frame, logger_func, log_file)
        self.planner = AStarPlanner(self.world, self.enemy, logger_func, log_file)
        self.explorer = FrontierExplorer(self.world, self.localizer, self.symmetry, self.planner,
                                         self.W, self.H, logger_func, log_file)

        self.turn = 0
        self.position: Coord = (0, 0)
        self.last_direction: Optional[Direction] = None
        self.visible_enemies: List[Coord] = []
        self.items_collected = 0
        self.world.mark_visit(self.position)

    def _log_debug(self, msg: str) -> None:
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, msg, "State")
        elif LOG_TO_CONSOLE:
            print(f"[State] {msg}")

    # ------------------------------------------------------------------
    # Turn input
    # ------------------------------------------------------------------
    def begin_turn(self) -> int:
        self.turn += 1
        self.world.begin_turn(self.turn)
        return self.turn

    def ingest(self, snapshot) -> bool:
        """Integrate this turn's 3x3 vision; returns the localized flag."""
        if not isinstance(snapshot, VisionSnapshot):
            snapshot = VisionSnapshot.from_raw(snapshot)
        px, py = self.position
        seen = self.world.ingest_vision(self.position, snapshot)

        # Our own blocks say nothing about the arena edge
        self.localizer.update(Observation(c, k, chebyshev(c, self.position), c not in self.world.self_placed)
                              for c, k in seen)
        self._after_localizer()

        self.visible_enemies = [(px + dx, py + dy) for dx, dy in snapshot.enemy_offsets()]
        self.enemy.update(self.turn, self.position, [c for c, _ in seen],
                          self.visible_enemies, self.world.tiles)

        if self.recorder is not None:
            self.recorder.log_vision(self.turn, self.position, snapshot)
            self.recorder.log_pose(self.turn, self.position, self.localizer.origin)
            self.recorder.log_belief(self.enemy.field)
        return self.localizer.is_localized()

    def ingest_probe(self, direction: Direction, ray) -> List[Tuple[int, Coord, TileKind]]:
        """Integrate a directional probe fired from the current position."""
        seen = self.world.ingest_ray(self.position, direction, ray)

        # Cells past the first wall (or past a gap) may lie outside the arena
        observations = []
        eligible = True
        expected = 1
        for dist, coord, kind in seen:
            if dist != expected:
                eligible = False
            expected = dist + 1
            observations.append(Observation(coord, kind, dist, eligible and coord not in self.world.self_placed))
            if kind is TileKind.BLOCK:
                eligible = False
        self.localizer.update(observations)
        self._after_localizer()

        enemies = [c for _, c, k in seen if k is TileKind.ENEMY]
        if enemies:
            self.enemy.update(self.turn, self.position, [], enemies, self.world.tiles)
        if self.recorder is not None:
            self.recorder.log_probe(self.turn, self.position, direction, ray)
        return seen

    def _after_localizer(self) -> None:
        """One-shot work once the origin is pinned."""
        if not self.localizer.consume_localized_event():
            return
        origin = self.localizer.origin
        ring = [self.localizer.to_relative(c) for c in boundary_ring(self.W, self.H)]
        stamped = self.world.stamp_boundary(ring)
        inferred = self.symmetry.replay()
        spawn_mirror = symmetric_absolute(origin, self.W, self.H)
        seeded = spawn_mirror is not None and self.enemy.seed(self.localizer.to_relative(spawn_mirror))
        self._log_debug(f"Localized at turn {self.turn}: origin={origin}, boundary={stamped}, "
                        f"inferred={inferred}, enemy_seeded={seeded}")

    def record_walk(self, direction: Direction, success: bool = True) -> bool:
        """Apply our own move; picking up an item leaves a block on the cell we left."""
        self.last_direction = direction
        if not success:
            self._log_debug(f"Walk {direction.value} from {self.position} failed")
            return False
        previous = self.position
        target = direction.step(previous)
        if self.world.get(target) is TileKind.ITEM:
            self.world.mark_self_placed(previous)
            self.items_collected += 1
        self.position = target
        self.world.position = target
        self.world.mark_visit(target)
        self.world.record(target, TileKind.EMPTY)
        return True

    def record_put(self, direction: Direction, success: bool = True) -> bool:
        if success:
            self.world.mark_self_placed(direction.step(self.position))
        return success

    def request_probe(self, direction: Direction) -> bool:
        """Flag the neighbour for probing; False when cached probe data already decided it."""
        target = direction.step(self.position)
        return self.world.request_probe(target, direction) is TrapStatus.PENDING_SEARCH

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def threat_cells(self) -> List[Coord]:
        if self.visible_enemies:
            return list(self.visible_enemies)
        predicted = self.predicted_enemy_position()
        return [predicted] if predicted is not None else []

    def query(self, goal, enemies: Optional[Sequence[Coord]] = None,
              avoid_items: bool = False) -> Optional[Direction]:
        """First step toward the cheapest cell satisfying ``goal``; None if unreachable."""
        threats = self.threat_cells() if enemies is None else list(enemies)
        return self.planner.first_step(self.position, goal, self.last_direction, threats, avoid_items)

    def explore_step(self) -> Optional[Direction]:
        return self.explorer.next_step(self.position, self.last_direction, self.threat_cells())

    def item_goal(self) -> ItemGoal:
        return ItemGoal(self.world)

    def frontier_goal(self):
        return self.explorer.frontier_goal()

    def tile_knowledge(self, coord: Coord) -> Tuple[Optional[TileKind], TrapStatus]:
        return self.world.get(coord), self.world.trap_status(coord)

    def is_localized(self) -> bool:
        return self.localizer.is_localized()

    def absolute_of(self, coord: Coord) -> Optional[Coord]:
        return self.localizer.to_absolute(coord)

    def relative_of(self, abs_coord: Coord) -> Optional[Coord]:
        return self.localizer.to_relative(abs_coord)

    def enemy_probability(self, coord: Coord) -> float:
        return self.enemy.probability(coord)

    def predicted_enemy_position(self) -> Optional[Coord]:
        return self.enemy.predicted_position(self.turn)
