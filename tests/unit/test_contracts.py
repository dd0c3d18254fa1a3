"""Validation of preferences and the tagged step data."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.ai.pipeline.contracts import MealResult, NutritionResult, PlanPreferences, WorkoutResult, dump_step_data, load_step_data, parse_weekly_budget, standardize_category


def test_preferences_accept_camel_case_and_normalize_days(reference_preferences) -> None:
  preferences = PlanPreferences.model_validate({**reference_preferences, "preferredWorkoutDays": ["Monday", " FRIDAY "]})
  assert preferences.preferred_workout_days == ["monday", "friday"]
  assert preferences.activity_level == "moderate"


def test_preferences_reject_unknown_fields_and_out_of_range(reference_preferences) -> None:
  with pytest.raises(ValidationError):
    PlanPreferences.model_validate({**reference_preferences, "favouriteColour": "red"})
  with pytest.raises(ValidationError):
    PlanPreferences.model_validate({**reference_preferences, "age": 12})
  with pytest.raises(ValidationError):
    PlanPreferences.model_validate({**reference_preferences, "workoutDaysPerWeek": 8})


@pytest.mark.parametrize(("raw", "expected"), [(None, 50.0), ("$75/week", 75.0), (10, 30.0), ("cheap", 50.0), (120.5, 120.5), (-5, 50.0)])
def test_parse_weekly_budget(raw, expected: float) -> None:
  assert parse_weekly_budget(raw) == expected


def test_budget_level_buckets(reference_preferences) -> None:
  assert PlanPreferences.model_validate({**reference_preferences, "weeklyBudget": 40}).budget_level == "economy"
  assert PlanPreferences.model_validate({**reference_preferences, "weeklyBudget": 70}).budget_level == "standard"
  assert PlanPreferences.model_validate({**reference_preferences, "weeklyBudget": 95}).budget_level == "premium"


@pytest.mark.parametrize(("raw", "expected"), [("Vegetables", "produce"), ("meat", "protein"), ("Eggs", "dairy"), ("pasta", "grains"), ("spices", "other"), (None, "other")])
def test_standardize_category(raw, expected: str) -> None:
  assert standardize_category(raw) == expected


def test_step_data_is_restored_as_tagged_variants() -> None:
  nutrition = NutritionResult(calories=2000, protein=150, carbs=200, fat=60, bmr=1600, tdee=2400)
  workout = WorkoutResult.model_validate({"weeklySchedule": {"Monday": {"name": "Legs", "workoutType": "strength"}}})
  restored = load_step_data(dump_step_data({"nutrition": nutrition, "workout": workout}))
  assert isinstance(restored["nutrition"], NutritionResult)
  assert isinstance(restored["workout"], WorkoutResult)
  assert set(restored["workout"].weekly_schedule) == {"monday"}


def test_corrupt_step_data_fails_fast() -> None:
  with pytest.raises(ValidationError):
    load_step_data({"meals": {"kind": "meals", "weeklyMealPlan": "not a mapping"}})
  with pytest.raises(ValidationError):
    load_step_data({"nutrition": {"kind": "unknown"}})


def test_meal_ingredient_categories_are_standardized() -> None:
  meals = MealResult.model_validate({"weeklyMealPlan": {"MONDAY": {"meal1": {"name": "Salad", "ingredients": [{"name": "Kale", "category": "Leafy vegetables"}]}}}})
  assert meals.weekly_meal_plan["monday"]["meal1"].ingredients[0].category == "produce"
