"""Deterministic canned plans used when the generative service is slow or unavailable."""

from __future__ import annotations

from app.ai.pipeline.contracts import WEEKDAYS, Exercise, Ingredient, Meal, MealResult, NutritionResult, PlanPreferences, WorkoutDay, WorkoutResult

_DEFAULT_TRAINING_DAYS: dict[int, tuple[str, ...]] = {
  1: ("wednesday",),
  2: ("monday", "thursday"),
  3: ("monday", "wednesday", "friday"),
  4: ("monday", "tuesday", "thursday", "friday"),
  5: ("monday", "tuesday", "wednesday", "friday", "saturday"),
  6: ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday"),
  7: WEEKDAYS,
}

_SESSIONS: dict[str, tuple[WorkoutDay, ...]] = {
  "strength": (
    WorkoutDay(
      name="Lower Body Strength",
      workout_type="strength",
      target_muscle_groups=["quadriceps", "hamstrings", "glutes"],
      exercises=[Exercise(name="Back Squat", sets=5, reps="5", rest="180s"), Exercise(name="Romanian Deadlift", sets=4, reps="6", rest="120s"), Exercise(name="Walking Lunge", sets=3, reps="10 each leg", rest="90s"), Exercise(name="Plank", sets=3, reps="45s", rest="60s")],
    ),
    WorkoutDay(
      name="Upper Body Strength",
      workout_type="strength",
      target_muscle_groups=["chest", "back", "shoulders"],
      exercises=[Exercise(name="Bench Press", sets=5, reps="5", rest="180s"), Exercise(name="Barbell Row", sets=4, reps="6", rest="120s"), Exercise(name="Overhead Press", sets=3, reps="8", rest="120s"), Exercise(name="Pull-up", sets=3, reps="AMRAP", rest="90s")],
    ),
  ),
  "hypertrophy": (
    WorkoutDay(
      name="Push",
      workout_type="hypertrophy",
      target_muscle_groups=["chest", "shoulders", "triceps"],
      exercises=[Exercise(name="Incline Dumbbell Press", sets=4, reps="8-12"), Exercise(name="Seated Shoulder Press", sets=3, reps="10-12"), Exercise(name="Cable Fly", sets=3, reps="12-15"), Exercise(name="Triceps Pushdown", sets=3, reps="12-15")],
    ),
    WorkoutDay(
      name="Pull",
      workout_type="hypertrophy",
      target_muscle_groups=["back", "biceps"],
      exercises=[Exercise(name="Lat Pulldown", sets=4, reps="8-12"), Exercise(name="Seated Cable Row", sets=3, reps="10-12"), Exercise(name="Face Pull", sets=3, reps="15"), Exercise(name="Dumbbell Curl", sets=3, reps="12")],
    ),
    WorkoutDay(
      name="Legs",
      workout_type="hypertrophy",
      target_muscle_groups=["quadriceps", "hamstrings", "calves"],
      exercises=[Exercise(name="Leg Press", sets=4, reps="10-12"), Exercise(name="Leg Curl", sets=3, reps="12"), Exercise(name="Bulgarian Split Squat", sets=3, reps="10 each leg"), Exercise(name="Calf Raise", sets=4, reps="15")],
    ),
  ),
  "conditioning": (
    WorkoutDay(
      name="Full Body Circuit",
      workout_type="circuit",
      target_muscle_groups=["full body"],
      exercises=[Exercise(name="Goblet Squat", sets=3, reps="15", rest="30s"), Exercise(name="Push-up", sets=3, reps="12", rest="30s"), Exercise(name="Kettlebell Swing", sets=3, reps="20", rest="30s"), Exercise(name="Mountain Climber", sets=3, reps="40s", rest="30s")],
    ),
    WorkoutDay(
      name="Cardio Intervals",
      workout_type="cardio",
      target_muscle_groups=["cardiovascular"],
      exercises=[Exercise(name="Bike Intervals", sets=8, reps="30s hard / 90s easy", rest="0s"), Exercise(name="Incline Walk", sets=1, reps="15 min", rest="0s", notes="Conversational pace")],
    ),
  ),
  "endurance": (
    WorkoutDay(
      name="Steady State Endurance",
      workout_type="cardio",
      target_muscle_groups=["cardiovascular"],
      exercises=[Exercise(name="Easy Run or Row", sets=1, reps="40 min", rest="0s", notes="Zone 2 heart rate")],
    ),
    WorkoutDay(
      name="Tempo and Core",
      workout_type="cardio",
      target_muscle_groups=["cardiovascular", "core"],
      exercises=[Exercise(name="Tempo Run", sets=3, reps="8 min", rest="120s"), Exercise(name="Dead Bug", sets=3, reps="12"), Exercise(name="Side Plank", sets=3, reps="30s each side")],
    ),
  ),
}

_GOAL_SESSIONS = {"strength": "strength", "muscle_gain": "hypertrophy", "weight_loss": "conditioning", "stamina": "endurance", "endurance": "endurance"}


def _training_days(preferences: PlanPreferences) -> list[str]:
  count = preferences.workout_days_per_week
  chosen = [day for day in (preferences.preferred_workout_days or []) if day in WEEKDAYS][:count]
  for day in _DEFAULT_TRAINING_DAYS[count]:
    if len(chosen) >= count:
      break
    if day not in chosen:
      chosen.append(day)
  return chosen


def rest_day() -> WorkoutDay:
  return WorkoutDay(name="Rest and Recovery", workout_type="rest", target_muscle_groups=[], exercises=[])


def fallback_workout(preferences: PlanPreferences) -> WorkoutResult:
  """Rotate goal-specific template sessions across the user's training days."""
  sessions = _SESSIONS[_GOAL_SESSIONS.get(preferences.fitness_goal, "conditioning")]
  training_days = set(_training_days(preferences))
  schedule: dict[str, WorkoutDay] = {}
  session_index = 0
  for day in WEEKDAYS:
    if day in training_days:
      schedule[day] = sessions[session_index % len(sessions)]
      session_index += 1
    else:
      schedule[day] = rest_day()
  return WorkoutResult(weekly_schedule=schedule, notes="Standard template schedule. Warm up for 5-10 minutes before each session.", source="fallback")


_PLANT_BASED = {"vegetarian", "vegan", "plant-based", "plant based"}


def _protein_source(preferences: PlanPreferences) -> Ingredient:
  restrictions = {item.strip().lower() for item in preferences.dietary_preferences}
  if restrictions & _PLANT_BASED:
    return Ingredient(name="Firm tofu", quantity=200, unit="g", category="protein", price=2.0)
  return Ingredient(name="Chicken breast", quantity=200, unit="g", category="protein", price=3.0)


def _meal(name: str, calories: float, nutrition: NutritionResult, share: float, ingredients: list[Ingredient]) -> Meal:
  return Meal(name=name, ingredients=ingredients, calories=round(calories), protein=round(nutrition.protein * share), carbs=round(nutrition.carbs * share), fat=round(nutrition.fat * share))


def fallback_meals(preferences: PlanPreferences, nutrition: NutritionResult) -> MealResult:
  """Three simple meals per day split 30/40/30 across the calorie target."""
  protein = _protein_source(preferences)
  breakfast_dairy = Ingredient(name="Greek yogurt", quantity=200, unit="g", category="dairy", price=1.2)
  if "vegan" in {item.strip().lower() for item in preferences.dietary_preferences}:
    breakfast_dairy = Ingredient(name="Soy yogurt", quantity=200, unit="g", category="dairy", price=1.4)

  day_plan = {
    "meal1": _meal(
      "Oats with yogurt and berries",
      nutrition.calories * 0.3,
      nutrition,
      0.3,
      [Ingredient(name="Rolled oats", quantity=80, unit="g", category="grains", price=0.3), breakfast_dairy, Ingredient(name="Mixed berries", quantity=100, unit="g", category="produce", price=1.0)],
    ),
    "meal2": _meal(
      f"{protein.name} rice bowl",
      nutrition.calories * 0.4,
      nutrition,
      0.4,
      [protein, Ingredient(name="Brown rice", quantity=150, unit="g", category="grains", price=0.4), Ingredient(name="Broccoli", quantity=150, unit="g", category="produce", price=0.8), Ingredient(name="Olive oil", quantity=10, unit="ml", category="other", price=0.2)],
    ),
    "meal3": _meal(
      "Lentil and vegetable stew",
      nutrition.calories * 0.3,
      nutrition,
      0.3,
      [Ingredient(name="Red lentils", quantity=100, unit="g", category="protein", price=0.5), Ingredient(name="Carrots", quantity=100, unit="g", category="produce", price=0.3), Ingredient(name="Whole wheat bread", quantity=2, unit="slices", category="grains", price=0.4)],
    ),
  }
  return MealResult(meal_frequency=3, weekly_meal_plan={day: dict(day_plan) for day in WEEKDAYS}, source="fallback")
