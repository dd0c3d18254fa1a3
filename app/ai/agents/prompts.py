"""Prompt helpers shared by plan agents."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from app.ai.pipeline.contracts import NutritionResult, PlanPreferences


@lru_cache(maxsize=16)
def _load_prompt(name: str) -> str:
  try:
    path = Path(__file__).parents[1] / "prompts" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc


def _format_list(values: list[str] | None, *, empty: str = "none") -> str:
  if not values:
    return empty
  return ", ".join(values)


def render_template(template: str, values: dict[str, str]) -> str:
  """Replace {{KEY}} placeholders; unknown placeholders are left as-is."""
  rendered = template
  for key, value in values.items():
    rendered = rendered.replace(f"{{{{{key}}}}}", value)
  return rendered


def preference_placeholders(preferences: PlanPreferences) -> dict[str, str]:
  return {
    "AGE": str(preferences.age),
    "SEX": preferences.sex,
    "HEIGHT": f"{preferences.height:g}",
    "WEIGHT": f"{preferences.weight:g}",
    "ACTIVITY_LEVEL": preferences.activity_level.replace("_", " "),
    "FITNESS_GOAL": preferences.fitness_goal.replace("_", " "),
    "DIETARY_PREFERENCES": _format_list(preferences.dietary_preferences),
    "WORKOUT_DAYS": str(preferences.workout_days_per_week),
    "PREFERRED_DAYS": _format_list(preferences.preferred_workout_days, empty="any"),
    "WORKOUT_DURATION": f"{preferences.workout_duration} minutes" if preferences.workout_duration else "45-60 minutes",
    "WEEKLY_BUDGET": f"{preferences.weekly_budget:.0f}",
    "BUDGET_LEVEL": preferences.budget_level,
    "PREFERRED_STORE": preferences.preferred_store or "any grocery store",
  }


def nutrition_placeholders(nutrition: NutritionResult) -> dict[str, str]:
  return {"CALORIES": str(nutrition.calories), "PROTEIN": str(nutrition.protein), "CARBS": str(nutrition.carbs), "FAT": str(nutrition.fat)}
