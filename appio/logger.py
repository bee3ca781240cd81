# ================================
# file: appio/logger.py
# ================================
from __future__ import annotations
from datetime import datetime
from typing import Optional, Sequence
import os
import time
import numpy as np

from core.types import Coord, Direction, TileKind, VisionSnapshot
from core.config import LOG_DIR, TILE_UNKNOWN, PROBE_RESULT_LENGTH


def log_to_file(log_file, message, module="MAIN"):
    """Write message to log file with timestamp and module"""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    log_entry = f"[{timestamp}] [{module}] {message}\n"
    log_file.write(log_entry)
    log_file.flush()  # Ensure immediate write
    print(log_entry.strip())  # Also print to console


def open_log(name: str = "agent", log_dir: str = LOG_DIR):
    """Open a timestamped log file under ``log_dir`` for ``log_to_file``."""
    os.makedirs(log_dir, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return open(os.path.join(log_dir, f"{name}_{stamp}.log"), "w", encoding="utf-8")


class DataLogger:
    """Simple NPZ logger for per-turn vision, probes, positions and belief snapshots."""
    def __init__(self) -> None:
        self.t0 = time.time()
        self.visions = []
        self.probes = []
        self.poses = []
        self.beliefs = []

    def log_vision(self, turn: int, position: Coord, snapshot: VisionSnapshot) -> None:
        tiles = [TILE_UNKNOWN if t is None else int(t) for t in snapshot.tiles]
        self.visions.append((turn, position[0], position[1], *tiles))

    def log_probe(self, turn: int, position: Coord, direction: Direction, ray: Sequence) -> None:
        # Fixed-width row: turn, x, y, direction index, then the raw result padded with UNKNOWN
        raw = list(ray) if isinstance(ray, (list, tuple, np.ndarray)) else []
        codes = []
        for c in raw[:PROBE_RESULT_LENGTH]:
            kind = TileKind.decode(c)
            codes.append(TILE_UNKNOWN if kind is None else int(kind))
        codes += [TILE_UNKNOWN] * (PROBE_RESULT_LENGTH - len(codes))
        self.probes.append((turn, position[0], position[1], list(Direction).index(direction), *codes))

    def log_pose(self, turn: int, position: Coord, origin: Optional[Coord]) -> None:
        ox, oy = origin if origin is not None else (-1, -1)
        self.poses.append((time.time() - self.t0, turn, position[0], position[1], ox, oy))

    def log_belief(self, field) -> None:
        self.beliefs.append(np.asarray(field, dtype=np.float32).copy())

    def save(self, path: str) -> None:
        np.savez_compressed(path,
                            visions=np.asarray(self.visions, dtype=np.int32),
                            probes=np.asarray(self.probes, dtype=np.int32),
                            poses=np.asarray(self.poses, dtype=np.float64),
                            beliefs=np.asarray(self.beliefs, dtype=np.float32))
