# ================================
# file: planning/__init__.py
# ================================
from planning.global_planner import AStarPlanner
from planning.goals import Goal, PredicateGoal, TargetGoal, CellSetGoal, ItemGoal, as_goal

__all__ = ["AStarPlanner", "Goal", "PredicateGoal", "TargetGoal", "CellSetGoal", "ItemGoal", "as_goal"]
