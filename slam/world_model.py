# ================================
# file: slam/world_model.py
# ================================
"""
World Model - Observed Tiles, Visit Counts and Trap Classification

Stores everything the agent has seen in its spawn-relative frame and decides
which cells are traps (cells that can be sealed by a single opponent block).

Key Features:
- Dense tile grid over the relative frame (UNKNOWN sentinel)
- Monotonic tile history with explicit overwrite rules
- Trap state machine (passive suspicion, active probe confirmation)
- Probe result cache with age-based purge
- Turn-stamped reachability caches (dead end, space size)
"""
from __future__ import annotations
from collections import deque
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from scipy.ndimage import convolve

from core.types import Coord, Direction, TileKind, TrapEntry, TrapReason, TrapStatus, VisionSnapshot
from core.coords import RelativeFrame, manhattan
from core.config import (
    TILE_UNKNOWN, TILE_BLOCK, TILE_ENEMY, TILE_ITEM, LOG_TO_CONSOLE,
    PROBE_MAX_DISTANCE, TRAP_SCAN_WINDOW, TRAP_REQUIRED_ESCAPE_OPTIONS, TRAP_SHORT_RUN_CELLS,
    TRAP_DEAD_END_THRESHOLD, MAP_WALLED_ITEM_MIN_BLOCKS, DEAD_END_DEFAULT_THRESHOLD, SPACE_SIZE_LIMIT,
    SEARCH_CACHE_TTL_TURNS, SEARCH_CACHE_REUSE_TURNS, SEARCH_CACHE_PASS_THROUGH_CELLS,
)

# 十字核：统计四邻域中的阻塞格数
_CROSS_KERNEL = np.array([[0, 1, 0],
                          [1, 0, 1],
                          [0, 1, 0]], dtype=np.int16)

# Low item density until enough tiles have been seen
_DEFAULT_ITEM_DENSITY: float = 0.05
_MIN_TILES_FOR_DENSITY: int = 10


class ProbeRecord:
    __slots__ = ("turn", "origin", "direction", "data")

    def __init__(self, turn: int, origin: Coord, direction: Direction,
                 data: List[Optional[TileKind]]) -> None:
        self.turn = turn
        self.origin = origin
        self.direction = direction
        self.data = data            # data[d] = tile at distance d, data[0] unused


class SearchCache:
    """Recent probe results keyed by (turn, origin, direction)."""

    def __init__(self) -> None:
        self.entries: Dict[Tuple[int, Coord, Direction], ProbeRecord] = {}

    def __len__(self) -> int:
        return len(self.entries)

    def store(self, record: ProbeRecord) -> None:
        self.entries[(record.turn, record.origin, record.direction)] = record
        self.purge(record.turn)

    def purge(self, turn: int) -> None:
        stale = [k for k, r in self.entries.items() if turn - r.turn > SEARCH_CACHE_TTL_TURNS]
        for k in stale:
            del self.entries[k]

    def passes_through(self, target: Coord, direction: Direction, turn: int) -> bool:
        """A recent probe along ``direction`` saw ``target`` and open cells beyond it."""
        for rec in self.entries.values():
            if turn - rec.turn > SEARCH_CACHE_REUSE_TURNS or rec.direction is not direction:
                continue
            for dist in range(1, len(rec.data)):
                if rec.direction.step(rec.origin, dist) != target:
                    continue
                ahead = rec.data[dist:dist + SEARCH_CACHE_PASS_THROUGH_CELLS]
                if len(ahead) >= SEARCH_CACHE_PASS_THROUGH_CELLS and \
                        all(t is not None and t.walkable for t in ahead):
                    return True
                break
        return False


class WorldModel:
    """Spawn-relative knowledge of the arena.

    ``localizer`` and ``symmetry`` are optional collaborators used for
    walkability of unobserved cells; the model works without them (every
    unknown cell inside the frame is then optimistically walkable).
    """

    def __init__(self, frame: RelativeFrame, localizer=None, symmetry=None,
                 logger_func=None, log_file=None) -> None:
        self.frame = frame
        self.localizer = localizer
        self.symmetry = symmetry
        self.logger_func = logger_func
        self.log_file = log_file

        self.tiles = frame.full(TILE_UNKNOWN, np.int8)
        self.visits = frame.full(0, np.int32)
        self.traps: Dict[Coord, TrapEntry] = {}
        # Status held before a probe was requested, restored when the probe says nothing
        self._before_probe: Dict[Coord, Tuple[TrapStatus, Optional[TrapReason]]] = {}
        self.search_cache = SearchCache()

        self.self_placed: Set[Coord] = set()
        self.historical_items: Set[Coord] = set()
        self.boundary_cells: Set[Coord] = set()
        self.observed_tiles = 0
        self.observed_items = 0

        self.turn = 0
        self.position: Coord = (0, 0)
        self._cache_turn = -1
        self._dead_end_cache: Dict[Tuple[Coord, int], bool] = {}
        self._space_cache: Dict[Coord, int] = {}

        # Spawn cell is open ground
        self.record((0, 0), TileKind.EMPTY)

    # ------------------------------------------------------------------
    # Tiles
    # ------------------------------------------------------------------
    def get(self, coord: Coord) -> Optional[TileKind]:
        if not self.frame.contains(coord):
            return None
        v = int(self.tiles[self.frame.to_index(coord)])
        return None if v == TILE_UNKNOWN else TileKind(v)

    def is_known(self, coord: Coord) -> bool:
        return self.get(coord) is not None

    def record(self, coord: Coord, kind: TileKind) -> bool:
        """Write an observed tile under the overwrite rules; True if it changed.

        BLOCK is permanent, items are only ever consumed or covered, and an
        ENEMY record yields to any later direct observation.
        """
        if kind is None or not self.frame.contains(coord):
            return False
        idx = self.frame.to_index(coord)
        prev = int(self.tiles[idx])
        if prev == int(kind):
            return False
        if prev == TILE_BLOCK:
            return False
        if kind is TileKind.ITEM and prev not in (TILE_UNKNOWN, TILE_ENEMY):
            return False
        if prev == TILE_UNKNOWN:
            self.observed_tiles += 1
            if kind is TileKind.ITEM:
                self.observed_items += 1
        self.tiles[idx] = int(kind)
        self._cache_turn = -1
        if kind is TileKind.ITEM:
            self.historical_items.add(coord)
        return True

    def record_inferred(self, coord: Coord, kind: TileKind) -> bool:
        """Fill an unknown cell from inference (symmetry, boundary ring)."""
        if not self.frame.contains(coord) or self.is_known(coord):
            return False
        self.tiles[self.frame.to_index(coord)] = int(kind)
        self._cache_turn = -1
        return True

    def mark_self_placed(self, coord: Coord) -> None:
        self.self_placed.add(coord)
        self.record(coord, TileKind.BLOCK)

    def mark_visit(self, coord: Coord) -> None:
        if self.frame.contains(coord):
            self.visits[self.frame.to_index(coord)] += 1

    def visit_count(self, coord: Coord) -> int:
        if not self.frame.contains(coord):
            return 0
        return int(self.visits[self.frame.to_index(coord)])

    def item_density(self) -> float:
        if self.observed_tiles < _MIN_TILES_FOR_DENSITY:
            return _DEFAULT_ITEM_DENSITY
        return self.observed_items / float(self.observed_tiles)

    def coords_of(self, kind: TileKind) -> List[Coord]:
        return self.frame.coords_of(self.tiles == int(kind))

    def stamp_boundary(self, ring: Sequence[Coord]) -> int:
        """Write the arena's outer wall ring (relative coords) where unknown."""
        written = 0
        for coord in ring:
            if self.record_inferred(coord, TileKind.BLOCK):
                self.boundary_cells.add(coord)
                written += 1
        if written:
            self._log_debug(f"Boundary ring stamped: {written} cells")
        return written

    # ------------------------------------------------------------------
    # Trap state machine
    # ------------------------------------------------------------------
    def trap_entry(self, coord: Coord) -> TrapEntry:
        entry = self.traps.get(coord)
        return entry.copy() if entry is not None else TrapEntry()

    def trap_status(self, coord: Coord) -> TrapStatus:
        entry = self.traps.get(coord)
        return entry.status if entry is not None else TrapStatus.UNKNOWN

    def _set_trap(self, coord: Coord, status: TrapStatus, reason: TrapReason,
                  direction: Optional[Direction] = None,
                  blocked_distance: Optional[int] = None) -> None:
        entry = self.traps.get(coord)
        if entry is None:
            entry = TrapEntry()
            self.traps[coord] = entry
        entry.status = status
        entry.reason = reason
        entry.updated_turn = self.turn
        if direction is not None:
            entry.direction = direction
        entry.blocked_distance = blocked_distance
        self._cache_turn = -1

    def mark_safe(self, coord: Coord, reason: TrapReason) -> bool:
        """Passive safety evidence; terminal states are left alone."""
        if self.trap_status(coord).terminal:
            return False
        self._set_trap(coord, TrapStatus.CONFIRMED_SAFE, reason)
        return True

    def walled_item_heuristic(self, coord: Coord, front_tile_is_item: bool,
                              two_forward_diagonal_blocked: bool) -> TrapStatus:
        """Item ahead with both forward diagonals blocked is suspected, no probe spent."""
        status = self.trap_status(coord)
        if front_tile_is_item and two_forward_diagonal_blocked:
            if status in (TrapStatus.UNKNOWN, TrapStatus.SUSPECTED_TRAP) and \
                    self.get(coord) is not TileKind.EMPTY:
                self._set_trap(coord, TrapStatus.SUSPECTED_TRAP, TrapReason.WALLED_ITEM)
        elif status is TrapStatus.SUSPECTED_TRAP and self.traps[coord].reason is TrapReason.WALLED_ITEM:
            self._set_trap(coord, TrapStatus.CONFIRMED_SAFE, TrapReason.WALLED_ITEM)
        return self.trap_status(coord)

    def dead_end_suspicion(self, coord: Coord) -> TrapStatus:
        """Non-empty cell with almost nothing reachable behind it is suspected."""
        status = self.trap_status(coord)
        tile = self.get(coord)
        if status is TrapStatus.UNKNOWN and tile is TileKind.ITEM and \
                self.is_dead_end(coord, TRAP_DEAD_END_THRESHOLD):
            self._set_trap(coord, TrapStatus.SUSPECTED_TRAP, TrapReason.DEAD_END)
        return self.trap_status(coord)

    def known_blocked(self, coord: Coord) -> bool:
        status = self.trap_status(coord)
        if status in (TrapStatus.CONFIRMED_TRAP, TrapStatus.PENDING_SEARCH, TrapStatus.SUSPECTED_TRAP):
            return True
        tile = self.get(coord)
        return tile is not None and tile.obstacle

    def _mark_map_walled_items(self) -> None:
        """Items with three blocked sides are pits whatever the probe would say."""
        blocked = (self.tiles == TILE_BLOCK) | (self.tiles == TILE_ENEMY)
        for coord, entry in self.traps.items():
            if entry.status in (TrapStatus.CONFIRMED_TRAP, TrapStatus.PENDING_SEARCH,
                                TrapStatus.SUSPECTED_TRAP) and self.frame.contains(coord):
                blocked[self.frame.to_index(coord)] = True
        counts = convolve(blocked.astype(np.int16), _CROSS_KERNEL, mode="constant", cval=0)
        pits = (self.tiles == TILE_ITEM) & (counts >= MAP_WALLED_ITEM_MIN_BLOCKS)
        for coord in self.frame.coords_of(pits):
            if not self.trap_status(coord).terminal:
                self._set_trap(coord, TrapStatus.CONFIRMED_TRAP, TrapReason.MAP_WALLED_ITEM)
                self._log_debug(f"Map-walled item at {coord} -> CONFIRMED_TRAP")

    def request_probe(self, coord: Coord, direction: Direction) -> TrapStatus:
        """Mark ``coord`` as awaiting a probe unless recent probe data already clears it."""
        status = self.trap_status(coord)
        if status.terminal:
            return status
        if self.search_cache.passes_through(coord, direction, self.turn):
            self._set_trap(coord, TrapStatus.CONFIRMED_SAFE, TrapReason.PROBE_CACHE, direction)
            return TrapStatus.CONFIRMED_SAFE
        if status is not TrapStatus.PENDING_SEARCH:
            entry = self.traps.get(coord)
            self._before_probe[coord] = (status, entry.reason if entry is not None else None)
        self._set_trap(coord, TrapStatus.PENDING_SEARCH, TrapReason.PROBE, direction)
        self.traps[coord].requested_turn = self.turn
        return TrapStatus.PENDING_SEARCH

    def _withdraw_probe(self, coord: Coord) -> None:
        if self.trap_status(coord) is not TrapStatus.PENDING_SEARCH:
            return
        status, reason = self._before_probe.pop(coord, (TrapStatus.UNKNOWN, None))
        self._set_trap(coord, status, reason)

    def lateral_escape_count(self, coord: Coord, forward: Direction) -> int:
        count = 0
        for side in forward.perpendiculars():
            n = side.step(coord)
            if self.trap_status(n).blocks_path:
                continue
            tile = self.get(n)
            if tile is not None and tile.walkable:
                count += 1
        return count

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def ingest_vision(self, center: Coord, snapshot: VisionSnapshot) -> List[Tuple[Coord, TileKind]]:
        """Record the 3x3 neighbourhood around ``center``; returns the reported cells."""
        seen: List[Tuple[Coord, TileKind]] = []
        for (dx, dy), tile in snapshot.cells():
            if tile is None:
                continue
            coord = (center[0] + dx, center[1] + dy)
            self.record(coord, tile)
            seen.append((coord, tile))
            if self.symmetry is not None and (
                    tile is TileKind.ITEM or (tile is TileKind.BLOCK and coord not in self.self_placed)):
                self.symmetry.apply(coord, tile)
            if tile is TileKind.EMPTY:
                self.mark_safe(coord, TrapReason.EMPTY_TILE)

        for d in Direction:
            front = d.step(center)
            diagonals = [side.step(front) for side in d.perpendiculars()]
            front_is_item = self.get(front) is TileKind.ITEM
            diag_blocked = all(self.get(c) is not None and self.get(c).obstacle for c in diagonals)
            self.walled_item_heuristic(front, front_is_item, diag_blocked)
            self.dead_end_suspicion(front)

        self._mark_map_walled_items()
        return seen

    def ingest_ray(self, origin: Coord, direction: Direction, ray) -> List[Tuple[int, Coord, TileKind]]:
        """Record a directional probe fired from ``origin``.

        ``ray`` is the raw probe array, index 0 the status and index d the tile
        at distance d. Short, long or garbled arrays are tolerated: cells that
        are missing or carry an unknown code stay unobserved.
        """
        if isinstance(ray, (str, bytes)) or not isinstance(ray, (Sequence, np.ndarray)):
            self._log_debug(f"Malformed probe result ignored: {type(ray).__name__}")
            self._withdraw_probe(direction.step(origin))
            return []
        limit = min(len(ray) - 1, PROBE_MAX_DISTANCE)
        data: List[Optional[TileKind]] = [None] * (limit + 1 if limit > 0 else 1)
        seen: List[Tuple[int, Coord, TileKind]] = []
        for dist in range(1, limit + 1):
            tile = TileKind.decode(ray[dist]) if ray[dist] is not None else None
            if tile is None:
                continue
            data[dist] = tile
            coord = direction.step(origin, dist)
            self.record(coord, tile)
            seen.append((dist, coord, tile))

        if not seen:
            self._log_debug(f"Probe {direction.value} carried no usable tiles; ignored")
            self._withdraw_probe(direction.step(origin))
            return seen
        self.search_cache.store(ProbeRecord(self.turn, origin, direction, data))
        self._classify_from_probe(direction.step(origin), direction, data)
        return seen

    def _classify_from_probe(self, target: Coord, direction: Direction,
                             data: List[Optional[TileKind]]) -> None:
        status = self.trap_status(target)
        if status.terminal:
            return
        wall_at = None
        escapes = 0
        resolved = False
        for dist in range(1, min(len(data) - 1, TRAP_SCAN_WINDOW + 1) + 1):
            tile = data[dist]
            if tile is None:
                break
            resolved = dist > TRAP_SCAN_WINDOW
            if tile.obstacle:
                wall_at = dist
                break
            if dist > TRAP_SCAN_WINDOW:
                break
            cell = direction.step(target, dist - 1)
            escapes = max(escapes, self.lateral_escape_count(cell, direction))

        if wall_at is None and not resolved and escapes < TRAP_REQUIRED_ESCAPE_OPTIONS:
            # 射线中途缺数据：不下结论，撤回等待状态
            self._withdraw_probe(target)
            self._log_debug(f"Probe {direction.value} toward {target} incomplete; no verdict")
            return
        self._before_probe.pop(target, None)
        # 墙紧贴候选格，或整段窗口都是封闭走廊
        sealed = wall_at is not None and (wall_at - 1 <= TRAP_SHORT_RUN_CELLS or wall_at > TRAP_SCAN_WINDOW)
        if sealed and escapes < TRAP_REQUIRED_ESCAPE_OPTIONS:
            self._set_trap(target, TrapStatus.CONFIRMED_TRAP, TrapReason.PROBE, direction, wall_at)
            self._log_debug(f"Probe {direction.value} from {direction.opposite.step(target)}: "
                            f"wall at {wall_at}, no lateral exit -> {target} CONFIRMED_TRAP")
        else:
            self._set_trap(target, TrapStatus.CONFIRMED_SAFE, TrapReason.PROBE, direction, wall_at)

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------
    def begin_turn(self, turn: int) -> None:
        self.turn = turn
        self.search_cache.purge(turn)

    def _turn_caches(self) -> None:
        if self._cache_turn != self.turn:
            self._dead_end_cache = {}
            self._space_cache = {}
            self._cache_turn = self.turn

    def near_boundary(self, coord: Coord) -> bool:
        """Within one cell of the outermost possible arena edge."""
        if self.localizer is None:
            return False
        b = self.localizer.outer_bounds()
        if b is None:
            return False
        x, y = coord
        return (x <= b["min_x"] + 1 or x >= b["max_x"] - 1 or
                y <= b["min_y"] + 1 or y >= b["max_y"] - 1)

    def walkable(self, coord: Coord) -> bool:
        """Planner walkability: known-open ground, or an unknown cell worth trying."""
        if not self.frame.contains(coord):
            return False
        if self.localizer is not None and self.localizer.definitely_outside(coord):
            return False
        if self.trap_status(coord).blocks_path:
            return False
        tile = self.get(coord)
        if tile is None:
            inferred = self.symmetry.infer(coord) if self.symmetry is not None else None
            if inferred is not None:
                return inferred.walkable
            return not self.near_boundary(coord)
        return tile.walkable

    def _bounded_reach(self, start: Coord, limit: int, passable) -> int:
        """BFS size from ``start`` (agent cell excluded), stopping past ``limit``."""
        visited = {start, self.position}
        queue = deque([start])
        count = 0
        while queue:
            cur = queue.popleft()
            count += 1
            if count > limit:
                return count
            for d in Direction:
                n = d.step(cur)
                if n in visited or not passable(n):
                    continue
                visited.add(n)
                queue.append(n)
        return count

    def is_dead_end(self, coord: Coord, threshold: int = DEAD_END_DEFAULT_THRESHOLD) -> bool:
        self._turn_caches()
        key = (coord, threshold)
        if key not in self._dead_end_cache:
            reach = self._bounded_reach(coord, threshold + 1, self.walkable)
            self._dead_end_cache[key] = reach <= threshold
        return self._dead_end_cache[key]

    def space_size(self, coord: Coord) -> int:
        """Reachable cells from ``coord``, capped just above SPACE_SIZE_LIMIT."""
        self._turn_caches()
        if coord not in self._space_cache:
            def passable(c: Coord) -> bool:
                return self.walkable(c) and self.trap_status(c) is not TrapStatus.SUSPECTED_TRAP
            self._space_cache[coord] = self._bounded_reach(coord, SPACE_SIZE_LIMIT, passable)
        return self._space_cache[coord]

    def nearest_item_distance(self, coord: Coord) -> Optional[int]:
        items = self.coords_of(TileKind.ITEM)
        if not items:
            return None
        return min(manhattan(coord, c) for c in items)

    # ------------------------------------------------------------------
    def _log_debug(self, msg: str) -> None:
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, msg, "World")
        elif LOG_TO_CONSOLE:
            print(f"[World] {msg}")
