from src.planner.config import PlannerConfig
from src.planner.service import JourneyPlanner

__all__ = ["JourneyPlanner", "PlannerConfig"]
