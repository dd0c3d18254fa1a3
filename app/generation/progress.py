"""Step descriptions, time estimates and output bindings for the generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from app.generation.models import StepId


@dataclass(frozen=True)
class StepDescriptor:
  """Static metadata for one pipeline state."""

  step: StepId
  message: str
  estimate_seconds: int
  output_key: str | None


STEP_DESCRIPTORS: dict[StepId, StepDescriptor] = {
  StepId.INITIALIZE: StepDescriptor(StepId.INITIALIZE, "Initializing plan generation", 5, "nutrition"),
  StepId.NUTRITION_CALC: StepDescriptor(StepId.NUTRITION_CALC, "Calculating nutritional requirements", 15, "workout"),
  StepId.WORKOUT_GEN: StepDescriptor(StepId.WORKOUT_GEN, "Generating workout plan", 60, "meals"),
  StepId.MEAL_GEN: StepDescriptor(StepId.MEAL_GEN, "Creating meal plan based on nutritional needs", 90, "shopping"),
  StepId.FINALIZE: StepDescriptor(StepId.FINALIZE, "Building shopping list and finalizing plan", 30, None),
  StepId.COMPLETE: StepDescriptor(StepId.COMPLETE, "Plan generation complete", 0, None),
}


def step_message(step: StepId) -> str:
  return STEP_DESCRIPTORS[step].message


def output_key_for(step: StepId) -> str | None:
  """Return the step-data key produced by the unit of work bound to ``step``."""
  return STEP_DESCRIPTORS[step].output_key


def estimated_time_remaining(step: StepId) -> int:
  """Sum the estimates of every state after ``step``."""
  return sum(descriptor.estimate_seconds for candidate, descriptor in STEP_DESCRIPTORS.items() if candidate > step)


def next_step(step: StepId) -> StepId:
  if step == StepId.COMPLETE:
    raise ValueError("COMPLETE has no successor step.")
  return StepId(step + 1)
