# ================================
# file: slam/symmetry.py
# ================================
"""Point-symmetry inference: the arena layout is symmetric about its centre,
so an item seen at absolute (x, y) implies one at (W-1-x, H-1-y).
Only active once the localizer has pinned the origin.
"""
from __future__ import annotations
from typing import Optional, Set

from core.types import Coord, TileKind
from core.coords import symmetric_absolute
from core.config import MAP_WIDTH, MAP_HEIGHT, SYMMETRY_MIRROR_ITEMS, SYMMETRY_MIRROR_BLOCKS, LOG_TO_CONSOLE


class SymmetryInference:
    def __init__(self, localizer, world=None, map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT,
                 mirror_items: bool = SYMMETRY_MIRROR_ITEMS, mirror_blocks: bool = SYMMETRY_MIRROR_BLOCKS,
                 logger_func=None, log_file=None) -> None:
        self.localizer = localizer
        self.world = world
        self.W = int(map_width)
        self.H = int(map_height)
        self.mirror_items = mirror_items
        self.mirror_blocks = mirror_blocks
        self.logger_func = logger_func
        self.log_file = log_file
        self.inferred: Set[Coord] = set()

    def mirror_of(self, coord: Coord) -> Optional[Coord]:
        """Relative coordinate of the symmetric partner, None until localized."""
        if not self.localizer.is_localized():
            return None
        abs_coord = self.localizer.to_absolute(coord)
        sym = symmetric_absolute(abs_coord, self.W, self.H) if abs_coord else None
        if sym is None:
            return None
        return self.localizer.to_relative(sym)

    def _mirrors(self, coord: Coord, kind: TileKind) -> bool:
        if kind is TileKind.ITEM:
            return self.mirror_items
        if kind is TileKind.BLOCK:
            return self.mirror_blocks and coord not in self.world.self_placed
        return False

    def apply(self, coord: Coord, kind: TileKind) -> Optional[Coord]:
        """Write the mirror of an observed tile if that cell is still unknown."""
        if self.world is None or not self._mirrors(coord, kind):
            return None
        target = self.mirror_of(coord)
        if target is None or not self.world.record_inferred(target, kind):
            return None
        self.inferred.add(target)
        return target

    def infer(self, coord: Coord) -> Optional[TileKind]:
        """Read-only guess for an unknown cell from its mirror."""
        target = self.mirror_of(coord)
        if target is None or self.world is None:
            return None
        kind = self.world.get(target)
        if kind is TileKind.ITEM and self.mirror_items:
            return TileKind.ITEM
        if kind is TileKind.EMPTY:
            return TileKind.EMPTY
        if kind is TileKind.BLOCK and self._mirrors(target, kind) and target not in self.world.boundary_cells:
            return TileKind.BLOCK
        return None

    def is_truly_unknown(self, coord: Coord) -> bool:
        if self.world.is_known(coord):
            return False
        if self.localizer.definitely_outside(coord):
            return False
        return self.infer(coord) is None

    def replay(self) -> int:
        """Re-apply the rule to every block/item seen so far, consumed items included."""
        sources = [(c, TileKind.ITEM) for c in self.world.coords_of(TileKind.ITEM)]
        sources += [(c, TileKind.ITEM) for c in sorted(self.world.historical_items)]
        sources += [(c, TileKind.BLOCK) for c in self.world.coords_of(TileKind.BLOCK)
                    if c not in self.world.self_placed and c not in self.world.boundary_cells]
        written = sum(1 for c, k in sources if self.apply(c, k) is not None)
        self._log_debug(f"Retroactive symmetry replay: {len(sources)} sources, {written} cells inferred")
        return written

    def _log_debug(self, msg: str) -> None:
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, msg, "Symmetry")
        elif LOG_TO_CONSOLE:
            print(f"[Symmetry] {msg}")
