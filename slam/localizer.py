# ================================
# file: slam/localizer.py
# ================================
"""
Origin Localizer - Hypothesis Elimination

The agent only knows its position relative to its spawn cell. This module
keeps the set of absolute spawn positions (origins) that are still
consistent with everything observed, and shrinks it until one remains.

Key Features:
- Hard pruning: walkable/item/enemy tiles must lie inside the arena
- Axis-independent locking (X and Y collapse separately)
- Boundary-wall soft scoring with thresholded axis locks
- Opposing-wall and corner cross-verification
- Post-lock verification with reset-and-replay recovery
"""
from __future__ import annotations
from collections import deque
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from core.types import Coord, Direction, Observation, TileKind
from core.config import (
    MAP_WIDTH, MAP_HEIGHT, LOG_TO_CONSOLE,
    LOCK_THRESHOLD_SINGLE_AXIS, LOCK_MARGIN_SINGLE_AXIS, LOCK_THRESHOLD_CORNER,
    MIN_OBSERVATIONS_FOR_SOFT_LOCK, WALL_VOTE_BASE_WEIGHT, WALL_VOTE_DISTANCE_WEIGHT,
    CORNER_RUN_WEIGHT, CORNER_BONUS, CORNER_MIN_RUN, CORNER_BACKING_DEPTH,
    POST_LOCK_CONTRADICTION_LIMIT, EXPLORATION_PHASE_OBSERVATIONS, LOCK_EVIDENCE_HISTORY,
)


class WallRun:
    """Blocks sharing one column (side left/right) or one row (side up/down)."""
    __slots__ = ("side", "line", "length")

    def __init__(self, side: Direction, line: int, length: int) -> None:
        self.side = side
        self.line = line
        self.length = length


class OriginLocalizer:
    """Eliminates absolute-origin hypotheses for the spawn cell.

    Candidates are a boolean mask indexed ``[oy, ox]``; a candidate (ox, oy)
    maps relative (rx, ry) to absolute (ox + rx, oy + ry).

    Usage:
        loc = OriginLocalizer()
        loc.update([Observation((0, -1), TileKind.EMPTY), ...])
        if loc.consume_localized_event():
            ...  # one-shot post-localization work
        loc.to_absolute((3, 2))
    """

    def __init__(self, map_width: int = MAP_WIDTH, map_height: int = MAP_HEIGHT,
                 logger_func=None, log_file=None) -> None:
        self.W = int(map_width)
        self.H = int(map_height)
        self.logger_func = logger_func
        self.log_file = log_file

        self.observations: Dict[Coord, TileKind] = {}
        # Cells ever seen open; a later block there (pick-up, put) cannot undo this
        self._open_seen: set = set()
        # Eligible boundary blocks -> closest distance they were seen from
        self._wall_blocks: Dict[Coord, int] = {}
        self._voted_blocks: set = set()
        self.evidence_log: deque = deque(maxlen=LOCK_EVIDENCE_HISTORY)
        self.reset_count = 0
        self._event_pending = False
        self._event_handled = False
        self._reset_hypotheses()

    def _reset_hypotheses(self) -> None:
        self._candidates = np.ones((self.H, self.W), dtype=bool)
        self.confirmed_x: Optional[int] = None
        self.confirmed_y: Optional[int] = None
        self.confirmed_origin: Optional[Coord] = None
        self.x_scores: Dict[int, float] = {}
        self.y_scores: Dict[int, float] = {}
        self._voted_blocks = set()
        self.contradiction_count = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_localized(self) -> bool:
        return self.confirmed_origin is not None or self.candidates_count() == 1

    @property
    def origin(self) -> Optional[Coord]:
        if self.confirmed_origin is not None:
            return self.confirmed_origin
        if self.candidates_count() == 1:
            oy, ox = np.argwhere(self._candidates)[0]
            return (int(ox), int(oy))
        return None

    def candidates_count(self) -> int:
        return int(self._candidates.sum())

    def candidates(self) -> List[Coord]:
        return [(int(ox), int(oy)) for oy, ox in np.argwhere(self._candidates)]

    def possible_xs(self) -> np.ndarray:
        return np.nonzero(self._candidates.any(axis=0))[0]

    def possible_ys(self) -> np.ndarray:
        return np.nonzero(self._candidates.any(axis=1))[0]

    def to_absolute(self, coord: Coord) -> Optional[Coord]:
        origin = self.origin
        if origin is None:
            return None
        return (origin[0] + coord[0], origin[1] + coord[1])

    def to_relative(self, abs_coord: Coord) -> Optional[Coord]:
        origin = self.origin
        if origin is None:
            return None
        return (abs_coord[0] - origin[0], abs_coord[1] - origin[1])

    def consume_localized_event(self) -> bool:
        """True exactly once per successful localization (re-armed by a reset)."""
        if self._event_pending:
            self._event_pending = False
            return True
        return False

    def _inside_window(self, coord: Coord) -> np.ndarray:
        """Candidates for which ``coord`` lands inside the arena."""
        rx, ry = coord
        x_lo, x_hi = max(0, -rx), min(self.W - 1, self.W - 1 - rx)
        y_lo, y_hi = max(0, -ry), min(self.H - 1, self.H - 1 - ry)
        window = np.zeros_like(self._candidates)
        if x_lo <= x_hi and y_lo <= y_hi:
            window[y_lo:y_hi + 1, x_lo:x_hi + 1] = True
        return window & self._candidates

    def definitely_inside(self, coord: Coord) -> bool:
        total = self.candidates_count()
        return total > 0 and int(self._inside_window(coord).sum()) == total

    def definitely_outside(self, coord: Coord) -> bool:
        if self.candidates_count() == 0:
            return False
        return not self._inside_window(coord).any()

    def estimated_bounds(self) -> Optional[Dict[str, int]]:
        """Relative extent inside the arena under every candidate (intersection)."""
        xs, ys = self.possible_xs(), self.possible_ys()
        if xs.size == 0 or ys.size == 0:
            return None
        return {
            "min_x": -int(xs.min()), "max_x": self.W - 1 - int(xs.max()),
            "min_y": -int(ys.min()), "max_y": self.H - 1 - int(ys.max()),
        }

    def outer_bounds(self) -> Optional[Dict[str, int]]:
        """Relative extent inside the arena under some candidate (union)."""
        xs, ys = self.possible_xs(), self.possible_ys()
        if xs.size == 0 or ys.size == 0:
            return None
        return {
            "min_x": -int(xs.max()), "max_x": self.W - 1 - int(xs.min()),
            "min_y": -int(ys.max()), "max_y": self.H - 1 - int(ys.min()),
        }

    def exploration_phase(self) -> bool:
        return len(self.observations) < EXPLORATION_PHASE_OBSERVATIONS

    def best_search_direction(self) -> Optional[Direction]:
        """Probe direction along the axis with the widest remaining uncertainty."""
        if self.is_localized():
            return None
        b = self.outer_bounds()
        if b is None:
            return None
        # 候选原点的取值个数即该轴的不确定度
        x_span = self.possible_xs().size - 1
        y_span = self.possible_ys().size - 1
        if x_span > y_span:
            return Direction.LEFT if abs(b["min_x"]) > abs(b["max_x"]) else Direction.RIGHT
        return Direction.UP if abs(b["min_y"]) > abs(b["max_y"]) else Direction.DOWN

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    def update(self, observations: Iterable[Observation]) -> bool:
        """Feed one batch of observations; returns the localized flag."""
        batch = [o for o in observations if o is not None and o.kind is not None]

        for obs in batch:
            self._store(obs)
            if self.is_localized():
                self._verify_after_lock(obs)
            elif obs.kind is not TileKind.BLOCK:
                self._prune(obs.coord)

        if not self.is_localized():
            self._apply_axis_constraints()
            if not self.is_localized() and self.candidates_count() > 1:
                self._apply_wall_constraints()
        self._check_localization()
        return self.is_localized()

    def _store(self, obs: Observation) -> None:
        self.observations[obs.coord] = obs.kind
        if obs.kind is not TileKind.BLOCK:
            self._open_seen.add(obs.coord)
            self._wall_blocks.pop(obs.coord, None)
        elif obs.boundary_eligible and obs.coord not in self._open_seen:
            prev = self._wall_blocks.get(obs.coord)
            if prev is None or obs.distance < prev:
                self._wall_blocks[obs.coord] = obs.distance

    def _prune(self, coord: Coord) -> None:
        """Drop every candidate placing ``coord`` outside the arena."""
        self._candidates &= self._inside_window(coord)

    def _apply_axis_constraints(self) -> None:
        xs, ys = self.possible_xs(), self.possible_ys()
        if self.confirmed_x is None and xs.size == 1:
            self.confirmed_x = int(xs[0])
            self._add_evidence("axis_x", self.confirmed_x, 0.0)
            self._log_debug(f"X轴确定 (hard): origin_x={self.confirmed_x}")
        if self.confirmed_y is None and ys.size == 1:
            self.confirmed_y = int(ys[0])
            self._add_evidence("axis_y", self.confirmed_y, 0.0)
            self._log_debug(f"Y轴确定 (hard): origin_y={self.confirmed_y}")

    def _apply_wall_constraints(self) -> None:
        if not self._wall_blocks:
            return
        self._try_opposing_walls()
        if self.is_localized():
            return
        self._score_wall_votes()
        self._try_axis_lock_by_score()
        if not self.is_localized():
            self._try_corner_lock()

    def _check_localization(self) -> None:
        count = self.candidates_count()
        if count == 0:
            self._log_debug("WARNING: all origin candidates eliminated, resetting")
            self.reset()
            return
        if count == 1 and self.confirmed_origin is None:
            self.confirmed_origin = self.origin
            self.confirmed_x, self.confirmed_y = self.confirmed_origin
            self._log_debug(f"Localized! origin={self.confirmed_origin}")
        if self.confirmed_origin is not None and not self._event_handled:
            self._event_handled = True
            self._event_pending = True

    # ------------------------------------------------------------------
    # Axis locks
    # ------------------------------------------------------------------
    def _lock_axis(self, axis: str, value: int, reason: str, score: float) -> None:
        if axis == "x":
            keep = np.zeros(self.W, dtype=bool)
            keep[value] = True
            self._candidates &= keep[np.newaxis, :]
            self.confirmed_x = value
        else:
            keep = np.zeros(self.H, dtype=bool)
            keep[value] = True
            self._candidates &= keep[:, np.newaxis]
            self.confirmed_y = value
        self._add_evidence(reason, value, score)
        self._log_debug(f"{axis.upper()} axis locked by {reason}: {value} (score={score:.2f}, "
                        f"candidates={self.candidates_count()})")

    def _consistent_x(self, ox: int) -> bool:
        return all(0 <= ox + c[0] < self.W for c in self._open_seen)

    def _consistent_y(self, oy: int) -> bool:
        return all(0 <= oy + c[1] < self.H for c in self._open_seen)

    def _consistent_origin(self, origin: Coord) -> bool:
        return self._consistent_x(origin[0]) and self._consistent_y(origin[1])

    def _try_opposing_walls(self) -> None:
        """Walls exactly W+1 (H+1) apart can only be the two arena edges."""
        if self.confirmed_x is None:
            xs = {c[0] for c in self._wall_blocks}
            possible = set(int(v) for v in self.possible_xs())
            found = {-1 - x for x in xs if x + self.W + 1 in xs}
            found = {ox for ox in found if ox in possible and self._consistent_x(ox)}
            if len(found) == 1:
                self._lock_axis("x", found.pop(), "opposing_walls_x", float(self.W + 1))
        if self.confirmed_y is None:
            ys = {c[1] for c in self._wall_blocks}
            possible = set(int(v) for v in self.possible_ys())
            found = {-1 - y for y in ys if y + self.H + 1 in ys}
            found = {oy for oy in found if oy in possible and self._consistent_y(oy)}
            if len(found) == 1:
                self._lock_axis("y", found.pop(), "opposing_walls_y", float(self.H + 1))

    def _score_wall_votes(self) -> None:
        """Each boundary-eligible block votes once for the origins it would imply."""
        for coord, dist in self._wall_blocks.items():
            if coord in self._voted_blocks:
                continue
            self._voted_blocks.add(coord)
            rx, ry = coord
            weight = WALL_VOTE_BASE_WEIGHT + dist * WALL_VOTE_DISTANCE_WEIGHT
            for ox in (-1 - rx, self.W - rx):
                if 0 <= ox < self.W:
                    self.x_scores[ox] = self.x_scores.get(ox, 0.0) + weight
            for oy in (-1 - ry, self.H - ry):
                if 0 <= oy < self.H:
                    self.y_scores[oy] = self.y_scores.get(oy, 0.0) + weight

    def _try_axis_lock_by_score(self) -> None:
        if len(self.observations) < MIN_OBSERVATIONS_FOR_SOFT_LOCK:
            return
        if self.confirmed_x is None:
            pick = self._leading_value(self.x_scores, self.possible_xs())
            if pick is not None:
                self._lock_axis("x", pick[0], "score_x", pick[1])
        if self.confirmed_y is None:
            pick = self._leading_value(self.y_scores, self.possible_ys())
            if pick is not None:
                self._lock_axis("y", pick[0], "score_y", pick[1])

    @staticmethod
    def _leading_value(scores: Dict[int, float], possible: np.ndarray) -> Optional[Tuple[int, float]]:
        ranked = sorted(((scores.get(int(v), 0.0), int(v)) for v in possible), reverse=True)
        if not ranked:
            return None
        best_score, best = ranked[0]
        runner_up = ranked[1][0] if len(ranked) > 1 else 0.0
        if best_score >= LOCK_THRESHOLD_SINGLE_AXIS and best_score - runner_up >= LOCK_MARGIN_SINGLE_AXIS:
            return best, best_score
        return None

    # ------------------------------------------------------------------
    # Corner cross-verification
    # ------------------------------------------------------------------
    def _wall_runs(self) -> List[WallRun]:
        """Columns/rows holding at least CORNER_MIN_RUN eligible blocks.

        The spawn column and row lie inside the arena, so blocks there are
        never boundary walls and form no run.
        """
        by_x: Dict[int, int] = {}
        by_y: Dict[int, int] = {}
        for x, y in self._wall_blocks:
            by_x[x] = by_x.get(x, 0) + 1
            by_y[y] = by_y.get(y, 0) + 1
        runs = []
        for x, n in by_x.items():
            if n >= CORNER_MIN_RUN and x != 0:
                runs.append(WallRun(Direction.LEFT if x < 0 else Direction.RIGHT, x, n))
        for y, n in by_y.items():
            if n >= CORNER_MIN_RUN and y != 0:
                runs.append(WallRun(Direction.UP if y < 0 else Direction.DOWN, y, n))
        return runs

    def _corner_candidate(self, runs: List[WallRun], h_side: Direction,
                          v_side: Direction) -> Optional[Tuple[float, Coord]]:
        h_runs = [r for r in runs if r.side is h_side]
        v_runs = [r for r in runs if r.side is v_side]
        if not h_runs or not v_runs:
            return None
        # outermost line is the likeliest arena edge
        h_run = min(h_runs, key=lambda r: r.line if h_side is Direction.LEFT else -r.line)
        v_run = min(v_runs, key=lambda r: r.line if v_side is Direction.UP else -r.line)

        bound_x = -1 if h_side is Direction.LEFT else self.W
        bound_y = -1 if v_side is Direction.UP else self.H
        origin = (bound_x - h_run.line, bound_y - v_run.line)
        if not (0 <= origin[0] < self.W and 0 <= origin[1] < self.H):
            return None

        score = (h_run.length + v_run.length) * CORNER_RUN_WEIGHT
        if h_run.length >= 2 and v_run.length >= 2:
            score += CORNER_BONUS
        if h_run.length >= 3 and v_run.length >= 3:
            score += CORNER_BONUS
        return score, origin

    def _backed(self, run: WallRun) -> bool:
        """Some block of the run has solid blocks behind it, away from the arena.

        Past a true edge every cell reads as BLOCK, so a probe fired at the
        wall shows a thick band; an interior run is usually one cell deep.
        """
        for coord in self._wall_blocks:
            if coord[0 if run.side in (Direction.LEFT, Direction.RIGHT) else 1] != run.line:
                continue
            behind = [run.side.step(coord, k) for k in range(1, CORNER_BACKING_DEPTH)]
            if all(self.observations.get(c) is TileKind.BLOCK and c not in self._open_seen
                   for c in behind):
                return True
        return False

    def _try_corner_lock(self) -> None:
        if len(self.observations) < MIN_OBSERVATIONS_FOR_SOFT_LOCK:
            return
        runs = [r for r in self._wall_runs() if self._backed(r)]
        found = []
        for h_side in (Direction.LEFT, Direction.RIGHT):
            for v_side in (Direction.UP, Direction.DOWN):
                cand = self._corner_candidate(runs, h_side, v_side)
                if cand is not None:
                    found.append(cand)
        if not found:
            return
        score, origin = max(found, key=lambda c: c[0])
        if score < LOCK_THRESHOLD_CORNER:
            return
        if not self._candidates[origin[1], origin[0]] or not self._consistent_origin(origin):
            return
        self._candidates[:] = False
        self._candidates[origin[1], origin[0]] = True
        self.confirmed_origin = origin
        self.confirmed_x, self.confirmed_y = origin
        self._add_evidence("corner", origin, score)
        self._log_debug(f"Corner verified and locked: {origin} (score={score:.2f})")

    # ------------------------------------------------------------------
    # Post-lock verification & recovery
    # ------------------------------------------------------------------
    def _verify_after_lock(self, obs: Observation) -> None:
        if obs.kind is TileKind.BLOCK:
            return
        ax, ay = self.to_absolute(obs.coord)
        if 0 <= ax < self.W and 0 <= ay < self.H:
            return
        self.contradiction_count += 1
        self._log_debug(f"POST-LOCK CONTRADICTION #{self.contradiction_count}: {obs.kind.name} at "
                        f"{obs.coord} -> abs {(ax, ay)} is outside the arena")
        if self.contradiction_count >= POST_LOCK_CONTRADICTION_LIMIT:
            self._log_debug("Multiple contradictions detected. Forcing reset.")
            self.reset()

    def reset(self) -> None:
        """Regenerate every candidate and replay stored observations (hard pruning only)."""
        self.reset_count += 1
        self._log_debug(f"Reset #{self.reset_count}; recent evidence: {list(self.evidence_log)[-5:]}")
        self._reset_hypotheses()
        self.evidence_log.clear()
        self._event_pending = False
        self._event_handled = False
        for coord in self._open_seen:
            self._prune(coord)
        if self.candidates_count() == 0:
            # Stored evidence is self-contradictory; start from scratch
            self._candidates[:] = True
        self._log_debug(f"Replayed {len(self._open_seen)} open cells, "
                        f"{self.candidates_count()} candidates remain")

    # ------------------------------------------------------------------
    def _add_evidence(self, kind: str, value, score: float) -> None:
        self.evidence_log.append({
            "type": kind, "value": value, "score": round(float(score), 3),
            "observations": len(self.observations), "candidates": self.candidates_count(),
        })

    def _log_debug(self, msg: str) -> None:
        """Log debug message"""
        if self.logger_func and self.log_file:
            self.logger_func(self.log_file, msg, "Localizer")
        elif LOG_TO_CONSOLE:
            print(f"[Localizer] {msg}")
