# ================================
# file: core/config.py
# ================================
"""
Global configuration for the fog-of-war pursuit agent core.
All distances are in grid cells, all times in turns.

Organization:
1. Map & Coordinate System
2. Vision & Probe
3. Trap Classification
4. Localization
5. Symmetry Inference
6. Enemy Belief
7. Path Planning
8. Exploration Strategy
9. Logging
"""
from __future__ import annotations

# ================================
# 1. MAP & COORDINATE SYSTEM
# ================================
MAP_WIDTH: int = 15             # Arena width (cells), reference ruleset
MAP_HEIGHT: int = 17            # Arena height (cells), reference ruleset

# 相对坐标系的存储窗口（出生点 = (0,0)）
# Any observation lies within (map extent - 1) + probe range of spawn.
FRAME_MARGIN: int = 10          # Extra cells beyond the map extent on each side

# Tile codes (server wire values)
TILE_EMPTY: int = 0
TILE_ENEMY: int = 1
TILE_BLOCK: int = 2
TILE_ITEM: int = 3
TILE_UNKNOWN: int = -1          # Sentinel for "never observed" in dense grids

# ================================
# 2. VISION & PROBE
# ================================
PROBE_MAX_DISTANCE: int = 9     # Cells returned by a directional probe
PROBE_RESULT_LENGTH: int = 10   # Raw probe array: [status, d1 .. d9]

# ================================
# 3. TRAP CLASSIFICATION
# ================================
TRAP_SCAN_WINDOW: int = 3                 # Open cells scanned beyond the trap candidate
TRAP_DEAD_END_THRESHOLD: int = 2          # Reachable cells at or below this make an item cell a dead end
TRAP_REQUIRED_ESCAPE_OPTIONS: int = 1     # Lateral exits needed to call a run escapable
TRAP_SHORT_RUN_CELLS: int = 1             # Open cells before a wall that still count as a pocket
MAP_WALLED_ITEM_MIN_BLOCKS: int = 3       # Blocked orthogonal sides that prove an item is a pit
DEAD_END_DEFAULT_THRESHOLD: int = 3       # Reachable cells at or below this => dead end
SPACE_SIZE_LIMIT: int = 12                # BFS cap for reachable-space size

SEARCH_CACHE_TTL_TURNS: int = 10          # Probe results older than this are purged
SEARCH_CACHE_REUSE_TURNS: int = 9         # Probe results younger than this may be reused
SEARCH_CACHE_PASS_THROUGH_CELLS: int = 3  # Walkable cells beyond target needed to skip a probe

# ================================
# 4. LOCALIZATION
# ================================
LOCK_THRESHOLD_SINGLE_AXIS: float = 2.0   # Soft axis lock score
LOCK_MARGIN_SINGLE_AXIS: float = 1.0      # Required lead over runner-up value
LOCK_THRESHOLD_CORNER: float = 3.0        # Corner cross-verification score
MIN_OBSERVATIONS_FOR_SOFT_LOCK: int = 30  # Stored observations before soft axis locks
WALL_VOTE_BASE_WEIGHT: float = 0.1        # Boundary vote weight at distance 0
WALL_VOTE_DISTANCE_WEIGHT: float = 0.05   # Extra vote weight per cell from the agent
CORNER_RUN_WEIGHT: float = 0.5            # Score per block in a corner wall run
CORNER_BONUS: float = 1.0                 # Bonus per run-length tier (>=2, >=3)
CORNER_MIN_RUN: int = 2                   # Blocks sharing a column/row to form a run
CORNER_BACKING_DEPTH: int = 3             # Solid blocks outward from a run, the run line included
POST_LOCK_CONTRADICTION_LIMIT: int = 3    # Contradictions that force a relocalization
EXPLORATION_PHASE_OBSERVATIONS: int = 50  # Observations before leaving the opening phase
LOCK_EVIDENCE_HISTORY: int = 10           # Lock events kept for debugging

# ================================
# 5. SYMMETRY INFERENCE
# ================================
SYMMETRY_MIRROR_ITEMS: bool = True        # Items are placed point-symmetrically
SYMMETRY_MIRROR_BLOCKS: bool = False      # Disabled: placed blocks break layout symmetry

# ================================
# 6. ENEMY BELIEF
# ================================
ENEMY_DIFFUSION_DECAY: float = 0.95       # Mass kept per unseen turn
ENEMY_PROBABILITY_THRESHOLD: float = 0.01 # Cells at or below this are dropped
ENEMY_SIGHTING_HISTORY: int = 20          # Sightings retained
ENEMY_RECENT_SIGHTING_TURNS: int = 2      # Sighting age that still counts as "current"

# ================================
# 7. PATH PLANNING
# ================================
ASTAR_MAX_EXPANSIONS: int = 500           # Node expansion ceiling per query
ASTAR_STEP_COST: float = 1.0
ASTAR_VISIT_PENALTY: float = 0.5          # Per recorded visit of the entered cell
ASTAR_TURN_PENALTY: float = 0.3           # Per change of heading
ASTAR_ITEM_AVOID_PENALTY: float = 2.0     # Stepping on a non-goal item when avoiding items
ASTAR_ITEM_HEURISTIC_WEIGHT: float = 0.5  # Nearest-item distance scale for item goals

# 敌人距离惩罚 (Manhattan distance -> extra cost)
ENEMY_PROXIMITY_PENALTIES: dict = {0: 100.0, 1: 30.0, 2: 10.0, 3: 3.0}
ENEMY_CELL_PROBABILITY_MIN: float = 0.1
ENEMY_CELL_PROBABILITY_WEIGHT: float = 20.0
ENEMY_NEIGHBOR_PROBABILITY_MIN: float = 0.2
ENEMY_NEIGHBOR_PROBABILITY_WEIGHT: float = 5.0

# ================================
# 8. EXPLORATION STRATEGY
# ================================
EXPLORE_BASE_PRIORITY: float = 10.0
EXPLORE_TRULY_UNKNOWN_BONUS: float = 5.0
EXPLORE_NEAR_EDGE_PENALTY: float = 3.0
EXPLORE_EDGE_PENALTY: float = 5.0
EXPLORE_CENTER_DISTANCE_WEIGHT: float = 0.2
EXPLORE_UNKNOWN_NEIGHBOR_BONUS: float = 0.5
EXPLORE_NEIGHBOR_VISIT_WEIGHT: float = 0.3
EXPLORE_FROM_VISIT_WEIGHT: float = 0.8
EXPLORE_DISTANCE_WEIGHT: float = 0.3
MIN_FRONTIER_SIZE: int = 1                # Frontier cells needed to report a frontier

# ================================
# 9. LOGGING
# ================================
LOG_DIR: str = "logs"                     # Directory used by the turn recorder
LOG_TO_CONSOLE: bool = True               # Echo module logs when no log file is wired
