# ================================
# file: slam/__init__.py
# ================================
"""
SLAM Package - Relative-Frame Mapping and Origin Localization

Exports:
- WorldState: per-turn interface over all knowledge components
- WorldModel: observed tiles, visits and trap classification
- OriginLocalizer: absolute spawn-origin hypothesis elimination
- SymmetryInference: point-symmetric tile inference
- EnemyBelief: opponent position probability field
"""
from slam.world_model import WorldModel, SearchCache, ProbeRecord
from slam.localizer import OriginLocalizer, WallRun
from slam.symmetry import SymmetryInference
from slam.enemy_belief import EnemyBelief, Sighting
from slam.world_state import WorldState

__all__ = [
    'WorldState',
    'WorldModel', 'SearchCache', 'ProbeRecord',
    'OriginLocalizer', 'WallRun',
    'SymmetryInference',
    'EnemyBelief', 'Sighting',
]
