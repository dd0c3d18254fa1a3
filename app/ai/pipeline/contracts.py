"""Shared data contracts for the plan generation pipeline."""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

WEEKDAYS: tuple[str, ...] = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
INGREDIENT_CATEGORIES: tuple[str, ...] = ("produce", "protein", "dairy", "grains", "other")
DEFAULT_WEEKLY_BUDGET = 50.0
MIN_WEEKLY_BUDGET = 30.0

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
ActivityLevel = Literal["sedentary", "light", "moderate", "very_active", "extra_active"]
FitnessGoal = Literal["weight_loss", "muscle_gain", "strength", "stamina", "endurance"]
ResultSource = Literal["model", "fallback"]


def parse_weekly_budget(raw: Any) -> float:
  """Coerce a budget given as a number or free text like "$75/week"."""
  if raw is None or isinstance(raw, bool):
    return DEFAULT_WEEKLY_BUDGET
  if isinstance(raw, int | float):
    value = float(raw)
  else:
    match = re.search(r"\d+(?:\.\d+)?", str(raw))
    if match is None:
      return DEFAULT_WEEKLY_BUDGET
    value = float(match.group(0))
  if value <= 0:
    return DEFAULT_WEEKLY_BUDGET
  return max(value, MIN_WEEKLY_BUDGET)


class _CamelModel(BaseModel):
  """Accepts the camelCase keys generative services emit; dumps snake_case."""

  model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


def _lowercase_keys(value: Any) -> Any:
  if isinstance(value, dict):
    return {str(key).strip().lower(): item for key, item in value.items()}
  return value


class PlanPreferences(BaseModel):
  """Preferences submitted when a user starts plan generation."""

  age: int = Field(ge=16, le=100)
  sex: Literal["male", "female"]
  height: float = Field(ge=100, le=250, description="Height in centimetres.")
  weight: float = Field(ge=30, le=250, description="Weight in kilograms.")
  activity_level: ActivityLevel = "moderate"
  fitness_goal: FitnessGoal
  dietary_preferences: list[Annotated[str, Field(min_length=1, max_length=60)]] = Field(default_factory=list, max_length=20)
  weekly_budget: float = Field(default=DEFAULT_WEEKLY_BUDGET, description="Weekly grocery budget; free text such as '$75/week' is accepted.")
  workout_days_per_week: int = Field(default=3, ge=1, le=7)
  preferred_workout_days: list[Weekday] | None = None
  workout_duration: int | None = Field(default=None, ge=10, le=180, description="Minutes per session.")
  preferred_store: str | None = Field(default=None, max_length=120)
  notify_by_email: bool = False
  model_config = ConfigDict(extra="forbid", populate_by_name=True, alias_generator=to_camel)

  @field_validator("weekly_budget", mode="before")
  @classmethod
  def _coerce_budget(cls, value: Any) -> float:
    return parse_weekly_budget(value)

  @field_validator("preferred_workout_days", mode="before")
  @classmethod
  def _normalize_days(cls, value: Any) -> Any:
    if isinstance(value, list):
      return [str(day).strip().lower() for day in value]
    return value

  @property
  def budget_level(self) -> str:
    """Bucket the budget for prompt guidance."""
    if self.weekly_budget < 50:
      return "economy"
    if self.weekly_budget > 90:
      return "premium"
    return "standard"


class NutritionResult(_CamelModel):
  """Daily nutrition targets computed from anthropometrics."""

  kind: Literal["nutrition"] = "nutrition"
  calories: int = Field(gt=0)
  protein: int = Field(ge=0)
  carbs: int = Field(ge=0)
  fat: int = Field(ge=0)
  bmr: int = Field(gt=0)
  tdee: int = Field(gt=0)


class Exercise(_CamelModel):
  name: str = Field(min_length=1)
  sets: int = Field(default=3, ge=1, le=20)
  reps: str = "10"
  rest: str = "60s"
  notes: str = ""


class WorkoutDay(_CamelModel):
  name: str
  workout_type: str = "rest"
  target_muscle_groups: list[str] = Field(default_factory=list)
  exercises: list[Exercise] = Field(default_factory=list)


class WorkoutResult(_CamelModel):
  """Generated weekly training schedule keyed by lowercase weekday."""

  kind: Literal["workout"] = "workout"
  weekly_schedule: dict[str, WorkoutDay]
  notes: str = ""
  source: ResultSource = "model"

  @field_validator("weekly_schedule", mode="before")
  @classmethod
  def _normalize_days(cls, value: Any) -> Any:
    return _lowercase_keys(value)


class Ingredient(_CamelModel):
  name: str = Field(min_length=1)
  quantity: float = Field(default=1, ge=0)
  unit: str = "unit"
  category: str = "other"
  price: float = Field(default=0, ge=0)

  @field_validator("category", mode="before")
  @classmethod
  def _standardize_category(cls, value: Any) -> str:
    return standardize_category(value)


class Meal(_CamelModel):
  name: str
  ingredients: list[Ingredient] = Field(default_factory=list)
  calories: float = Field(default=0, ge=0)
  protein: float = Field(default=0, ge=0)
  carbs: float = Field(default=0, ge=0)
  fat: float = Field(default=0, ge=0)


class MealResult(_CamelModel):
  """Generated weekly meal plan keyed by weekday then meal slot."""

  kind: Literal["meals"] = "meals"
  meal_frequency: int = Field(default=3, ge=1, le=8)
  weekly_meal_plan: dict[str, dict[str, Meal]]
  source: ResultSource = "model"

  @field_validator("weekly_meal_plan", mode="before")
  @classmethod
  def _normalize_days(cls, value: Any) -> Any:
    return _lowercase_keys(value)


class ShoppingItem(_CamelModel):
  name: str
  quantity: float = 0
  unit: str = "unit"
  category: str = "other"
  estimated_price: float = 0


class ShoppingListResult(_CamelModel):
  """Shopping list derived from the meal plan ingredients."""

  kind: Literal["shopping"] = "shopping"
  status: Literal["success", "error"] = "success"
  message: str | None = None
  categories: dict[str, list[ShoppingItem]] = Field(default_factory=dict)
  items: list[ShoppingItem] = Field(default_factory=list)
  total_cost: float = 0
  weekly_budget: float = DEFAULT_WEEKLY_BUDGET
  budget_status: Literal["under_budget", "over_budget", "unknown"] = "unknown"


StepResult = Annotated[NutritionResult | WorkoutResult | MealResult | ShoppingListResult, Field(discriminator="kind")]
StepData = dict[str, StepResult]

STEP_DATA_ADAPTER: TypeAdapter[dict[str, Any]] = TypeAdapter(StepData)


def load_step_data(raw: dict[str, Any] | None) -> dict[str, Any]:
  """Validate persisted step data; raises pydantic.ValidationError on corrupt entries."""
  return STEP_DATA_ADAPTER.validate_python(raw or {})


def dump_step_data(step_data: dict[str, Any]) -> dict[str, Any]:
  """Serialize validated step data back to JSON-safe primitives."""
  return STEP_DATA_ADAPTER.dump_python(step_data, mode="json")


_CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
  "produce": ("produce", "vegetable", "fruit", "veg"),
  "protein": ("protein", "meat", "fish", "seafood", "poultry"),
  "dairy": ("dairy", "egg", "milk", "cheese"),
  "grains": ("grain", "bread", "cereal", "pasta", "rice"),
}


def standardize_category(raw: Any) -> str:
  """Map free-form ingredient categories onto the five shopping categories."""
  if not raw:
    return "other"
  text = str(raw).strip().lower()
  if text in INGREDIENT_CATEGORIES:
    return text
  for category, keywords in _CATEGORY_KEYWORDS.items():
    if any(keyword in text for keyword in keywords):
      return category
  return "other"


class AssembledPlan(BaseModel):
  """Canonical plan produced by the result assembler."""

  preferences: dict[str, Any]
  nutrition: NutritionResult
  workout_plan: dict[str, Any]
  meal_plan: dict[str, Any]
  warnings: list[str] = Field(default_factory=list)
