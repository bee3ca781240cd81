# ================================
# file: explore/__init__.py
# ================================
from explore.frontier_explorer import FrontierExplorer, FrontierCandidate

__all__ = ["FrontierExplorer", "FrontierCandidate"]
