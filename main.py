# ================================
# file: main.py
# ================================
from __future__ import annotations
"""Offline entrypoint: drives the world state against a simulated arena.
- A random point-symmetric ArenaMap plays the server.
- Each turn: look, update the world state, step toward the nearest known
  item or else the best frontier, probing first when an item cell is
  still unclassified.

Usage:
    python main.py --turns 200 --seed 7 --npz run.npz
"""
import argparse
from datetime import datetime
from typing import Optional

from core.types import TileKind, TrapStatus
from sim import ArenaMap, SimBot
from slam import WorldState
from appio import DataLogger, log_to_file, open_log


def run(turns: int = 200, seed: Optional[int] = None, npz_path: Optional[str] = None,
        log_dir: str = "logs") -> WorldState:
    """Wire modules and play ``turns`` simulated turns; returns the final world state."""
    log_file = open_log("sim_run", log_dir)
    try:
        arena = ArenaMap(seed=seed)
        bot = SimBot(arena)
        recorder = DataLogger() if npz_path else None
        state = WorldState(logger_func=log_to_file, log_file=log_file, recorder=recorder)

        log_to_file(log_file, "=" * 60)
        log_to_file(log_file, f"开始时间: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        log_to_file(log_file, f"arena seed={seed}, spawn={bot.spawn}, turns={turns}")
        log_to_file(log_file, "=" * 60)

        localized_turn = None
        for _ in range(turns):
            state.begin_turn()
            state.ingest(bot.look())
            if localized_turn is None and state.is_localized():
                localized_turn = state.turn

            step = state.query(state.item_goal(), avoid_items=False)
            if step is None:
                step = state.explore_step()
            if step is None:
                log_to_file(log_file, f"turn {state.turn}: nothing reachable, waiting")
                continue

            target = step.step(state.position)
            tile, status = state.tile_knowledge(target)
            if tile is TileKind.ITEM and status is TrapStatus.UNKNOWN and state.request_probe(step):
                state.ingest_probe(step, bot.search(step))
                continue
            if state.tile_knowledge(target)[1] is TrapStatus.CONFIRMED_TRAP:
                continue
            state.record_walk(step, bot.walk(step))

        log_to_file(log_file, "=" * 60)
        log_to_file(log_file, f"程序结束 - 总回合: {state.turn}, items={state.items_collected}, "
                              f"localized_turn={localized_turn}, origin={state.absolute_of((0, 0))}, "
                              f"true_spawn={bot.spawn}")
        log_to_file(log_file, "=" * 60)
        if recorder is not None:
            recorder.save(npz_path)
        return state
    finally:
        # Ensure log file is closed
        log_file.close()


def _parse_args():
    ap = argparse.ArgumentParser()
    ap.add_argument("--turns", type=int, default=200, help="turns to simulate")
    ap.add_argument("--seed", type=int, default=None, help="arena generator seed")
    ap.add_argument("--npz", type=str, default=None, help="save per-turn data to this .npz")
    ap.add_argument("--log-dir", type=str, default="logs", help="directory for the run log")
    return ap.parse_args()


def main():
    args = _parse_args()
    run(turns=args.turns, seed=args.seed, npz_path=args.npz, log_dir=args.log_dir)


if __name__ == "__main__":
    main()
