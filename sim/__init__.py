# ================================
# file: sim/__init__.py
# ================================
"""Simulation world: point-symmetric arena and a player body with simulated sensors.
NOTE: All functions here are SIMULATION INTERFACES. A live game client
provides the same readings (3x3 vision, probe arrays, walk/put results).
"""
from .arena_map import ArenaMap
from .robot_sim import SimBot


__all__ = ["ArenaMap", "SimBot"]
