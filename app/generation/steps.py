"""Units of work bound to each pipeline step."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from app.ai.agents.base import BaseAgent
from app.ai.agents.fallbacks import fallback_meals, fallback_workout
from app.ai.agents.meal import MealPlannerAgent
from app.ai.agents.workout import PlannerInput, WorkoutPlannerAgent
from app.ai.pipeline.contracts import MealResult, NutritionResult, PlanPreferences, WorkoutResult
from app.ai.providers.base import AIModel
from app.generation.errors import StepExecutionError
from app.generation.models import StepId
from app.generation.nutrition import calculate_nutrition
from app.generation.shopping import build_shopping_list

logger = logging.getLogger(__name__)

ModelFactory = Callable[[], AIModel]


class StepExecutor:
  """Execute the work for one step; generative calls are bounded by ``timeout_seconds``."""

  def __init__(self, *, model_factory: ModelFactory, timeout_seconds: float, fallback_enabled: bool = True) -> None:
    self._model_factory = model_factory
    self._timeout_seconds = timeout_seconds
    self._fallback_enabled = fallback_enabled

  async def execute(self, step: StepId, preferences: PlanPreferences, step_data: dict[str, Any]) -> Any:
    if step == StepId.INITIALIZE:
      return calculate_nutrition(preferences)

    if step == StepId.NUTRITION_CALC:
      planner_input = PlannerInput(preferences=preferences, nutrition=_require(step_data, "nutrition", NutritionResult))
      return await self._generate(WorkoutPlannerAgent, planner_input, lambda: fallback_workout(preferences))

    if step == StepId.WORKOUT_GEN:
      planner_input = PlannerInput(preferences=preferences, nutrition=_require(step_data, "nutrition", NutritionResult))
      return await self._generate(MealPlannerAgent, planner_input, lambda: fallback_meals(preferences, planner_input.nutrition))

    if step == StepId.MEAL_GEN:
      return build_shopping_list(_require(step_data, "meals", MealResult), weekly_budget=preferences.weekly_budget)

    raise StepExecutionError(f"No unit of work is bound to step {step.name}")

  async def _generate(self, agent_cls: type[BaseAgent[PlannerInput, Any]], planner_input: PlannerInput, fallback: Callable[[], WorkoutResult | MealResult]) -> WorkoutResult | MealResult:
    try:
      agent = agent_cls(model=self._model_factory())
      return await asyncio.wait_for(agent.run(planner_input), timeout=self._timeout_seconds)
    except TimeoutError as exc:
      if not self._fallback_enabled:
        raise StepExecutionError(f"{agent_cls.name} timed out after {self._timeout_seconds:g}s") from exc
      logger.warning("%s timed out after %.1fs; using fallback plan", agent_cls.name, self._timeout_seconds)
    except Exception as exc:  # noqa: BLE001
      if not self._fallback_enabled:
        raise StepExecutionError(f"{agent_cls.name} failed: {exc}") from exc
      logger.warning("%s failed; using fallback plan: %s", agent_cls.name, exc, exc_info=True)
    return fallback()


def _require(step_data: dict[str, Any], key: str, expected: type) -> Any:
  value = step_data.get(key)
  if not isinstance(value, expected):
    raise StepExecutionError(f"Step output '{key}' is missing; earlier steps must run first")
  return value
