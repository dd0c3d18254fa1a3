"""Domain models for per-user plan generation records."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class StepId(IntEnum):
  """Ordinal pipeline states; a record only moves forward until reset."""

  INITIALIZE = 0
  NUTRITION_CALC = 1
  WORKOUT_GEN = 2
  MEAL_GEN = 3
  FINALIZE = 4
  COMPLETE = 5


TOTAL_STEPS = int(StepId.COMPLETE)


def utc_now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True)
class PlanUser:
  """The caller as seen by the generation core."""

  id: uuid.UUID
  email: str | None = None
  full_name: str | None = None
  is_admin: bool = False
  is_trainer: bool = False

  @property
  def is_privileged(self) -> bool:
    return self.is_admin or self.is_trainer


@dataclass(frozen=True)
class GenerationRecord:
  """Durable generation state for one user."""

  user_id: uuid.UUID
  is_generating: bool
  current_step: StepId
  step_message: str
  estimated_time_remaining_seconds: int
  generation_token: str
  input_payload: dict[str, Any]
  started_at: datetime.datetime
  updated_at: datetime.datetime
  total_steps: int = TOTAL_STEPS
  error_message: str | None = None
  retry_count: int = 0
  claimed_step: int | None = None
  claimed_at: datetime.datetime | None = None
  step_data: dict[str, Any] = field(default_factory=dict)

  @property
  def is_failed(self) -> bool:
    return self.error_message is not None

  @property
  def is_complete(self) -> bool:
    return self.current_step == StepId.COMPLETE


@dataclass(frozen=True)
class GenerationStatus:
  """Read-only progress projection returned to callers."""

  is_generating: bool
  current_step: StepId
  total_steps: int
  step_message: str
  estimated_time_remaining_seconds: int
  error_message: str | None = None
  retry_count: int = 0
  started_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None

  @classmethod
  def idle(cls) -> GenerationStatus:
    """Projection used when a user has no record at all."""
    return cls(is_generating=False, current_step=StepId.INITIALIZE, total_steps=TOTAL_STEPS, step_message="", estimated_time_remaining_seconds=0)

  @classmethod
  def from_record(cls, record: GenerationRecord) -> GenerationStatus:
    return cls(
      is_generating=record.is_generating,
      current_step=record.current_step,
      total_steps=record.total_steps,
      step_message=record.step_message,
      estimated_time_remaining_seconds=record.estimated_time_remaining_seconds,
      error_message=record.error_message,
      retry_count=record.retry_count,
      started_at=record.started_at,
      updated_at=record.updated_at,
    )


@dataclass(frozen=True)
class StepProgress:
  """Outcome of a single continue call."""

  step: StepId
  message: str
  estimated_time_remaining_seconds: int
  is_generating: bool
  error_message: str | None = None
  recomputed: bool = True


@dataclass(frozen=True)
class PlanRecord:
  """A stored plan; at most one per user has is_active set."""

  id: uuid.UUID
  user_id: uuid.UUID
  preferences: dict[str, Any]
  nutrition: dict[str, Any]
  workout_plan: dict[str, Any]
  meal_plan: dict[str, Any]
  is_active: bool
  created_at: datetime.datetime
  assembly_warnings: list[str] = field(default_factory=list)
  deactivated_at: datetime.datetime | None = None
  deactivation_reason: str | None = None
