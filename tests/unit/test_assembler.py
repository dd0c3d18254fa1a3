"""Result assembly: default substitution, warnings and the commit."""

from __future__ import annotations

import pytest

from app.ai.pipeline.contracts import WEEKDAYS, MealResult, NutritionResult, PlanPreferences, WorkoutResult
from app.generation.assembler import REPLACED_BY_NEW_PLAN, ResultAssembler
from app.generation.errors import AssemblyError
from app.generation.shopping import build_shopping_list

NUTRITION = NutritionResult(calories=2044, protein=140, carbs=218, fat=68, bmr=1649, tdee=2556)


@pytest.fixture
def preferences(reference_preferences) -> PlanPreferences:
  return PlanPreferences.model_validate(reference_preferences)


@pytest.fixture
def assembler(harness) -> ResultAssembler:
  return ResultAssembler(plans_repo=harness.plans_repo, notifier=harness.notifier)


def test_missing_nutrition_cannot_be_defaulted(assembler, preferences) -> None:
  with pytest.raises(AssemblyError):
    assembler.assemble(preferences, {})


def test_missing_days_become_rest_and_empty_entries(assembler, preferences) -> None:
  workout = WorkoutResult.model_validate({"weeklySchedule": {"monday": {"name": "Legs", "workoutType": "strength"}}})
  meals = MealResult.model_validate({"mealFrequency": 2, "weeklyMealPlan": {"monday": {"meal1": {"name": "Oats"}}}})
  assembled = assembler.assemble(preferences, {"nutrition": NUTRITION, "workout": workout, "meals": meals})

  schedule = assembled.workout_plan["weeklySchedule"]
  assert list(schedule) == list(WEEKDAYS)
  assert schedule["monday"]["workoutType"] == "strength"
  assert schedule["sunday"]["workoutType"] == "rest"

  weekly = assembled.meal_plan["weeklyMealPlan"]
  assert list(weekly) == list(WEEKDAYS)
  assert weekly["monday"]["meal1"]["name"] == "Oats"
  assert weekly["monday"]["meal2"]["name"] == ""
  assert set(weekly["friday"]) == {"meal1", "meal2"}

  assert "workout day 'sunday' missing; scheduled as rest" in assembled.warnings
  assert "meal 'meal2' on 'monday' missing; left empty" in assembled.warnings
  assert "shopping list missing; empty list substituted" in assembled.warnings


def test_complete_outputs_assemble_without_warnings(assembler, preferences) -> None:
  workout = WorkoutResult.model_validate({"weeklySchedule": {day: {"name": "Rest"} for day in WEEKDAYS}})
  meals = MealResult.model_validate({"mealFrequency": 1, "weeklyMealPlan": {day: {"meal1": {"name": "Soup", "ingredients": [{"name": "Leek", "category": "produce", "price": 1}]}} for day in WEEKDAYS}})
  shopping = build_shopping_list(meals, weekly_budget=preferences.weekly_budget)
  assembled = assembler.assemble(preferences, {"nutrition": NUTRITION, "workout": workout, "meals": meals, "shopping": shopping})
  assert assembled.warnings == []
  assert assembled.meal_plan["shoppingList"]["totalCost"] == 7
  assert assembled.preferences["fitnessGoal"] == "weight_loss"


@pytest.mark.anyio
async def test_commit_replaces_active_plan_and_syncs_goals(assembler, preferences, harness, user) -> None:
  assembled = assembler.assemble(preferences, {"nutrition": NUTRITION})
  first = await assembler.commit(user, assembled)
  second = await assembler.commit(user, assembled)

  active = [plan for plan in harness.plans_repo.plans if plan.is_active]
  assert [plan.id for plan in active] == [second.id]
  previous = next(plan for plan in harness.plans_repo.plans if plan.id == first.id)
  assert previous.deactivation_reason == REPLACED_BY_NEW_PLAN
  assert harness.plans_repo.nutrition_goals[user.id]["calories"] == 2044
  assert len(harness.notifier.dispatched) == 2
  assert second.assembly_warnings == assembled.warnings


@pytest.mark.anyio
async def test_goal_sync_failure_does_not_undo_commit(assembler, preferences, harness, user) -> None:
  harness.plans_repo.fail_goal_sync = True
  plan = await assembler.commit(user, assembler.assemble(preferences, {"nutrition": NUTRITION}))
  assert (await harness.plans_repo.get_active(user.id)).id == plan.id
  assert harness.notifier.dispatched
