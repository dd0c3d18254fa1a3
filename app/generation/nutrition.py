"""Deterministic daily nutrition targets (Mifflin-St Jeor)."""

from __future__ import annotations

from dataclasses import dataclass

from app.ai.pipeline.contracts import NutritionResult, PlanPreferences

ACTIVITY_FACTORS: dict[str, float] = {"sedentary": 1.2, "light": 1.375, "moderate": 1.55, "very_active": 1.725, "extra_active": 1.9}

# Macro calories may drift this far from the target before carbs absorb the difference.
MACRO_TOLERANCE_KCAL = 50


@dataclass(frozen=True)
class GoalProfile:
  calorie_factor: float
  protein_per_kg: float
  fat_share: float
  carb_share: float


GOAL_PROFILES: dict[str, GoalProfile] = {
  "weight_loss": GoalProfile(0.8, 2.0, 0.3, 0.3),
  "muscle_gain": GoalProfile(1.1, 2.2, 0.25, 0.45),
  "strength": GoalProfile(1.05, 2.0, 0.3, 0.4),
  "stamina": GoalProfile(1.0, 1.6, 0.25, 0.55),
  "endurance": GoalProfile(1.1, 1.6, 0.25, 0.55),
}
DEFAULT_GOAL_PROFILE = GoalProfile(1.0, 1.6, 0.3, 0.4)


def basal_metabolic_rate(*, weight: float, height: float, age: int, sex: str) -> float:
  base = 10 * weight + 6.25 * height - 5 * age
  return base + 5 if sex == "male" else base - 161


def calculate_nutrition(preferences: PlanPreferences) -> NutritionResult:
  """Compute calories and macros for the user's goal and activity level."""
  bmr = basal_metabolic_rate(weight=preferences.weight, height=preferences.height, age=preferences.age, sex=preferences.sex)
  tdee = bmr * ACTIVITY_FACTORS.get(preferences.activity_level, ACTIVITY_FACTORS["moderate"])
  profile = GOAL_PROFILES.get(preferences.fitness_goal, DEFAULT_GOAL_PROFILE)

  calories = round(tdee * profile.calorie_factor)
  protein = round(preferences.weight * profile.protein_per_kg)
  fat = round(calories * profile.fat_share / 9)
  carbs = round(calories * profile.carb_share / 4)

  macro_calories = protein * 4 + carbs * 4 + fat * 9
  difference = calories - macro_calories
  if abs(difference) > MACRO_TOLERANCE_KCAL:
    carbs = max(carbs + round(difference / 4), 0)

  return NutritionResult(calories=calories, protein=protein, carbs=carbs, fat=fat, bmr=round(bmr), tdee=round(tdee))
