# ================================
# file: core/types.py
# ================================
"""Shared data structures: tiles, directions, trap records and observations.
Use minimal typing: Tuple/Optional/Dict/Sequence only.
"""
from __future__ import annotations
from enum import Enum, IntEnum
from typing import Tuple, Optional, Sequence, Iterator, List

Coord = Tuple[int, int]


class TileKind(IntEnum):
    """Tile codes as reported by the game server."""
    EMPTY = 0
    ENEMY = 1
    BLOCK = 2
    ITEM = 3

    @classmethod
    def decode(cls, code) -> Optional["TileKind"]:
        """Server code -> TileKind, None for anything out of range."""
        if isinstance(code, bool):
            return None
        try:
            value = int(code)
        except (TypeError, ValueError):
            return None
        if value != code:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def walkable(self) -> bool:
        return self in (TileKind.EMPTY, TileKind.ITEM)

    @property
    def obstacle(self) -> bool:
        return self in (TileKind.BLOCK, TileKind.ENEMY)


class Direction(Enum):
    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    @property
    def delta(self) -> Coord:
        return _DIRECTION_DELTAS[self]

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITES[self]

    def perpendiculars(self) -> Tuple["Direction", "Direction"]:
        if self in (Direction.UP, Direction.DOWN):
            return (Direction.LEFT, Direction.RIGHT)
        return (Direction.UP, Direction.DOWN)

    def step(self, coord: Coord, distance: int = 1) -> Coord:
        dx, dy = self.delta
        return (coord[0] + dx * distance, coord[1] + dy * distance)

    @classmethod
    def from_delta(cls, dx: int, dy: int) -> Optional["Direction"]:
        for d, delta in _DIRECTION_DELTAS.items():
            if delta == (dx, dy):
                return d
        return None


# y grows downward, matching the server's row order
_DIRECTION_DELTAS = {
    Direction.UP: (0, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
}
_OPPOSITES = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}


class TrapStatus(Enum):
    UNKNOWN = "unknown"
    PENDING_SEARCH = "pending_search"
    SUSPECTED_TRAP = "suspected_trap"
    CONFIRMED_TRAP = "confirmed_trap"
    CONFIRMED_SAFE = "confirmed_safe"

    @property
    def terminal(self) -> bool:
        return self in (TrapStatus.CONFIRMED_TRAP, TrapStatus.CONFIRMED_SAFE)

    @property
    def blocks_path(self) -> bool:
        return self in (TrapStatus.CONFIRMED_TRAP, TrapStatus.PENDING_SEARCH)


class TrapReason(Enum):
    EMPTY_TILE = "empty_tile"
    WALLED_ITEM = "walled_item"
    MAP_WALLED_ITEM = "map_walled_item"
    DEAD_END = "dead_end"
    PROBE = "probe"
    PROBE_CACHE = "probe_cache"


class TrapEntry:
    """Trap classification record for one coordinate.

    Attributes
    -----------
    status : TrapStatus
    reason : Optional[TrapReason]
    updated_turn : turn of the last transition
    direction : probe direction, when a probe was requested or analysed
    requested_turn : turn the probe was requested
    blocked_distance : distance of the wall found by the probe, if any
    """
    __slots__ = ("status", "reason", "updated_turn", "direction",
                 "requested_turn", "blocked_distance")

    def __init__(self, status: TrapStatus = TrapStatus.UNKNOWN,
                 reason: Optional[TrapReason] = None, updated_turn: int = 0,
                 direction: Optional[Direction] = None,
                 requested_turn: Optional[int] = None,
                 blocked_distance: Optional[int] = None) -> None:
        self.status = status
        self.reason = reason
        self.updated_turn = updated_turn
        self.direction = direction
        self.requested_turn = requested_turn
        self.blocked_distance = blocked_distance

    def copy(self) -> "TrapEntry":
        return TrapEntry(self.status, self.reason, self.updated_turn,
                         self.direction, self.requested_turn, self.blocked_distance)

    def __repr__(self) -> str:
        return f"TrapEntry({self.status.value}, reason={self.reason.value if self.reason else None})"


# Vision cell order: row-major from the top-left, centre at index 4
VISION_OFFSETS: Tuple[Coord, ...] = (
    (-1, -1), (0, -1), (1, -1),
    (-1, 0), (0, 0), (1, 0),
    (-1, 1), (0, 1), (1, 1),
)


class VisionSnapshot:
    """3x3 neighbourhood reported around the agent.

    Parameters
    ----------
    tiles : Sequence
        Nine tile codes (or TileKind) row-major from the top-left. ``None`` or
        out-of-range codes mark cells that were not reported.
    """
    __slots__ = ("tiles",)

    def __init__(self, tiles: Sequence) -> None:
        if isinstance(tiles, (str, bytes)) or not isinstance(tiles, Sequence):
            raise ValueError(f"vision snapshot must be a sequence, got {type(tiles).__name__}")
        cells = list(tiles)[:len(VISION_OFFSETS)]
        cells += [None] * (len(VISION_OFFSETS) - len(cells))
        self.tiles: List[Optional[TileKind]] = [TileKind.decode(c) if c is not None else None
                                                for c in cells]

    @classmethod
    def from_raw(cls, raw: Sequence) -> "VisionSnapshot":
        """Server array of length 10 ([status, t1 .. t9]) or 9 (tiles only)."""
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise ValueError(f"vision snapshot must be a sequence, got {type(raw).__name__}")
        if len(raw) == len(VISION_OFFSETS) + 1:
            return cls(list(raw)[1:])
        return cls(raw)

    def cells(self) -> Iterator[Tuple[Coord, Optional[TileKind]]]:
        for offset, tile in zip(VISION_OFFSETS, self.tiles):
            yield offset, tile

    def at(self, dx: int, dy: int) -> Optional[TileKind]:
        return self.tiles[(dy + 1) * 3 + (dx + 1)]

    def enemy_offsets(self) -> List[Coord]:
        return [off for off, tile in self.cells() if tile is TileKind.ENEMY and off != (0, 0)]


class Observation:
    """One tile fed to the localizer.

    ``distance`` is the Chebyshev distance from the agent when the tile was
    seen; ``boundary_eligible`` is False for probe cells behind the first wall,
    which may lie several cells outside the arena.
    """
    __slots__ = ("coord", "kind", "distance", "boundary_eligible")

    def __init__(self, coord: Coord, kind: TileKind, distance: int = 0,
                 boundary_eligible: bool = True) -> None:
        self.coord = (int(coord[0]), int(coord[1]))
        self.kind = kind
        self.distance = int(distance)
        self.boundary_eligible = bool(boundary_eligible)

    def __repr__(self) -> str:
        return f"Observation({self.coord}, {self.kind.name})"
