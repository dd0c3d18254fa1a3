from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.generation.eligibility import EligibilityDecision
from app.generation.models import GenerationStatus, PlanRecord, StepProgress


class _CamelResponse(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EligibilityResponse(_CamelResponse):
  """Whether the caller may start a new plan generation."""

  can_create: bool
  days_remaining: int | None = None
  message: str | None = None
  has_managed_plan: bool = False
  globally_disabled: bool = False

  @classmethod
  def from_decision(cls, decision: EligibilityDecision) -> EligibilityResponse:
    return cls(can_create=decision.can_create, days_remaining=decision.days_remaining, message=decision.message, has_managed_plan=decision.has_managed_plan, globally_disabled=decision.globally_disabled)


class StartGenerationResponse(_CamelResponse):
  step: int = Field(description="Always 0 for a fresh run.")
  message: str


class ContinueGenerationResponse(_CamelResponse):
  """Progress after one continue call; step failures are reported here rather than as HTTP errors."""

  step: int
  message: str
  estimated_time_remaining: int
  is_generating: bool
  error_message: str | None = None

  @classmethod
  def from_progress(cls, progress: StepProgress) -> ContinueGenerationResponse:
    return cls(step=int(progress.step), message=progress.message, estimated_time_remaining=progress.estimated_time_remaining_seconds, is_generating=progress.is_generating, error_message=progress.error_message)


class GenerationStatusResponse(_CamelResponse):
  is_generating: bool
  current_step: int
  total_steps: int
  step_message: str
  estimated_time_remaining_seconds: int
  error_message: str | None = None
  retry_count: int = 0
  started_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None

  @classmethod
  def from_status(cls, status: GenerationStatus) -> GenerationStatusResponse:
    return cls(
      is_generating=status.is_generating,
      current_step=int(status.current_step),
      total_steps=status.total_steps,
      step_message=status.step_message,
      estimated_time_remaining_seconds=status.estimated_time_remaining_seconds,
      error_message=status.error_message,
      retry_count=status.retry_count,
      started_at=status.started_at,
      updated_at=status.updated_at,
    )


class PlanResponse(_CamelResponse):
  """The user's active plan; nested documents are already camelCase."""

  id: uuid.UUID
  user_id: uuid.UUID
  preferences: dict[str, Any]
  nutrition: dict[str, Any]
  workout_plan: dict[str, Any]
  meal_plan: dict[str, Any]
  assembly_warnings: list[str] = Field(default_factory=list)
  is_active: bool
  created_at: datetime.datetime

  @classmethod
  def from_record(cls, plan: PlanRecord) -> PlanResponse:
    return cls(
      id=plan.id,
      user_id=plan.user_id,
      preferences=plan.preferences,
      nutrition=plan.nutrition,
      workout_plan=plan.workout_plan,
      meal_plan=plan.meal_plan,
      assembly_warnings=plan.assembly_warnings,
      is_active=plan.is_active,
      created_at=plan.created_at,
    )


class ResetResponse(BaseModel):
  ok: bool = True


class SweepStaleResponse(BaseModel):
  reset: int
