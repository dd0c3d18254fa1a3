"""Workout planner agent."""

from __future__ import annotations

from dataclasses import dataclass

from app.ai.agents.base import BaseAgent
from app.ai.agents.prompts import _load_prompt, nutrition_placeholders, preference_placeholders, render_template
from app.ai.pipeline.contracts import NutritionResult, PlanPreferences, WorkoutResult


@dataclass(frozen=True)
class PlannerInput:
  """Inputs shared by the workout and meal agents."""

  preferences: PlanPreferences
  nutrition: NutritionResult


class WorkoutPlannerAgent(BaseAgent[PlannerInput, WorkoutResult]):
  """Generate a weekly workout schedule for the user's goal."""

  name = "WorkoutPlanner"
  output_model = WorkoutResult

  def render_prompt(self, input_data: PlannerInput) -> str:
    values = preference_placeholders(input_data.preferences) | nutrition_placeholders(input_data.nutrition)
    return render_template(_load_prompt("workout_planner.md"), values)
