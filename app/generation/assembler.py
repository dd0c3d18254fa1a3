"""Normalize step outputs into one plan and commit it as the user's active plan."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from app.ai.agents.fallbacks import rest_day
from app.ai.pipeline.contracts import WEEKDAYS, AssembledPlan, Meal, MealResult, NutritionResult, PlanPreferences, ShoppingListResult, WorkoutResult
from app.generation.errors import AssemblyError
from app.generation.models import PlanRecord, PlanUser, utc_now
from app.storage.generation_repo import PlansRepository
from app.utils.ids import generate_plan_id

logger = logging.getLogger(__name__)

REPLACED_BY_NEW_PLAN = "replaced_by_new_plan"


class PlanReadyNotifier(Protocol):
  def dispatch_plan_ready(self, *, user: PlanUser, plan: PlanRecord, notify_by_email: bool) -> None:
    """Schedule plan-ready notifications without waiting on delivery."""


def _dump(model: Any) -> dict[str, Any]:
  return model.model_dump(mode="json", by_alias=True, exclude={"kind"})


def _assemble_workout(workout: WorkoutResult | None, warnings: list[str]) -> dict[str, Any]:
  if workout is None:
    warnings.append("workout plan missing; every day scheduled as rest")
    workout = WorkoutResult(weekly_schedule={}, source="fallback")

  schedule: dict[str, Any] = {}
  for day in WEEKDAYS:
    entry = workout.weekly_schedule.get(day)
    if entry is None:
      warnings.append(f"workout day '{day}' missing; scheduled as rest")
      entry = rest_day()
    schedule[day] = _dump(entry)

  ignored = sorted(set(workout.weekly_schedule) - set(WEEKDAYS))
  if ignored:
    warnings.append(f"workout entries for unknown days ignored: {', '.join(ignored)}")
  return {"weeklySchedule": schedule, "notes": workout.notes, "source": workout.source}


def _assemble_meals(meals: MealResult | None, warnings: list[str]) -> dict[str, Any]:
  if meals is None:
    warnings.append("meal plan missing; every day left empty")
    meals = MealResult(weekly_meal_plan={}, source="fallback")

  slots = [f"meal{index}" for index in range(1, meals.meal_frequency + 1)]
  weekly: dict[str, Any] = {}
  for day in WEEKDAYS:
    day_meals = meals.weekly_meal_plan.get(day)
    if day_meals is None:
      warnings.append(f"meal day '{day}' missing; left empty")
      day_meals = {}
    entries = {}
    for slot in slots:
      meal = day_meals.get(slot)
      if meal is None:
        if day_meals:
          warnings.append(f"meal '{slot}' on '{day}' missing; left empty")
        meal = Meal(name="")
      entries[slot] = _dump(meal)
    for slot, meal in day_meals.items():
      if slot not in entries:
        entries[slot] = _dump(meal)
    weekly[day] = entries
  return {"mealFrequency": meals.meal_frequency, "weeklyMealPlan": weekly, "source": meals.source}


class ResultAssembler:
  """Build the canonical plan from step data, then activate it."""

  def __init__(self, *, plans_repo: PlansRepository, notifier: PlanReadyNotifier | None = None) -> None:
    self._plans_repo = plans_repo
    self._notifier = notifier

  def assemble(self, preferences: PlanPreferences, step_data: dict[str, Any]) -> AssembledPlan:
    """Never fails on partial output except for missing nutrition targets."""
    nutrition = step_data.get("nutrition")
    if not isinstance(nutrition, NutritionResult):
      raise AssemblyError("Nutrition targets are missing; the plan cannot be assembled")

    warnings: list[str] = []
    workout = step_data.get("workout")
    meals = step_data.get("meals")
    shopping = step_data.get("shopping")

    workout_plan = _assemble_workout(workout if isinstance(workout, WorkoutResult) else None, warnings)
    meal_plan = _assemble_meals(meals if isinstance(meals, MealResult) else None, warnings)

    if not isinstance(shopping, ShoppingListResult):
      warnings.append("shopping list missing; empty list substituted")
      shopping = ShoppingListResult(weekly_budget=preferences.weekly_budget)
    elif shopping.status == "error":
      warnings.append(f"shopping list derivation failed: {shopping.message}")
    meal_plan["shoppingList"] = _dump(shopping)

    for warning in warnings:
      logger.warning("Plan assembly: %s", warning)

    return AssembledPlan(
      preferences=preferences.model_dump(mode="json", by_alias=True),
      nutrition=nutrition,
      workout_plan=workout_plan,
      meal_plan=meal_plan,
      warnings=warnings,
    )

  async def commit(self, user: PlanUser, assembled: AssembledPlan, *, generation_token: str | None = None) -> PlanRecord | None:
    """Store the plan as the only active one; follow-ups never undo the commit.

    Returns ``None`` without side effects when ``generation_token`` no longer
    owns the user's generation record.
    """
    plan = PlanRecord(
      id=generate_plan_id(),
      user_id=user.id,
      preferences=assembled.preferences,
      nutrition=_dump(assembled.nutrition),
      workout_plan=assembled.workout_plan,
      meal_plan=assembled.meal_plan,
      is_active=True,
      created_at=utc_now(),
      assembly_warnings=list(assembled.warnings),
    )
    stored = await self._plans_repo.activate_plan(plan, deactivation_reason=REPLACED_BY_NEW_PLAN, generation_token=generation_token)
    if stored is None:
      return None
    logger.info("Activated plan %s for user %s", stored.id, user.id)

    nutrition = assembled.nutrition
    try:
      await self._plans_repo.upsert_nutrition_goal(user.id, calories=nutrition.calories, protein=nutrition.protein, carbs=nutrition.carbs, fat=nutrition.fat)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Nutrition goal sync failed for user %s: %s", user.id, exc)

    if self._notifier is not None:
      try:
        self._notifier.dispatch_plan_ready(user=user, plan=stored, notify_by_email=bool(assembled.preferences.get("notifyByEmail")))
      except Exception as exc:  # noqa: BLE001
        logger.warning("Plan-ready notification could not be scheduled for user %s: %s", user.id, exc)
    return stored
