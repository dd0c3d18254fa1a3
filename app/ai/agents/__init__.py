"""Agent implementations."""

from app.ai.agents.base import BaseAgent
from app.ai.agents.meal import MealPlannerAgent
from app.ai.agents.workout import PlannerInput, WorkoutPlannerAgent

__all__ = ["BaseAgent", "MealPlannerAgent", "PlannerInput", "WorkoutPlannerAgent"]
