"""Step contracts shared by the agents and the generation pipeline."""

from app.ai.pipeline.contracts import AssembledPlan, MealResult, NutritionResult, PlanPreferences, ShoppingListResult, WorkoutResult

__all__ = ["AssembledPlan", "MealResult", "NutritionResult", "PlanPreferences", "ShoppingListResult", "WorkoutResult"]
