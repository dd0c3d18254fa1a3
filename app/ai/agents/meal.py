"""Meal planner agent."""

from __future__ import annotations

from app.ai.agents.base import BaseAgent
from app.ai.agents.prompts import _load_prompt, nutrition_placeholders, preference_placeholders, render_template
from app.ai.agents.workout import PlannerInput
from app.ai.pipeline.contracts import MealResult


class MealPlannerAgent(BaseAgent[PlannerInput, MealResult]):
  """Generate a weekly meal plan that meets the nutrition targets and budget."""

  name = "MealPlanner"
  output_model = MealResult

  def render_prompt(self, input_data: PlannerInput) -> str:
    values = preference_placeholders(input_data.preferences) | nutrition_placeholders(input_data.nutrition)
    return render_template(_load_prompt("meal_planner.md"), values)
