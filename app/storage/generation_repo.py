"""Storage interfaces for plan generation records and plans."""

from __future__ import annotations

import datetime
import uuid
from typing import Any, Protocol

from app.generation.models import GenerationRecord, PlanRecord, StepId


class GenerationRepository(Protocol):
  """Repository contract for the per-user generation record.

  Every mutating method is a conditional write: it returns ``None`` when the
  precondition (generation token, current step, generating flag) no longer holds.
  """

  async def get(self, user_id: uuid.UUID) -> GenerationRecord | None:
    """Fetch the user's record, if any."""

  async def try_start(self, record: GenerationRecord) -> GenerationRecord | None:
    """Insert or overwrite the user's record unless one is currently generating."""

  async def claim_step(self, user_id: uuid.UUID, *, generation_token: str, step: StepId, now: datetime.datetime, claim_ttl_seconds: int) -> GenerationRecord | None:
    """Mark ``step`` as being executed unless another unexpired claim holds it."""

  async def advance(
    self,
    user_id: uuid.UUID,
    *,
    generation_token: str,
    from_step: StepId,
    to_step: StepId,
    step_data: dict[str, Any],
    step_message: str,
    estimated_time_remaining_seconds: int,
    is_generating: bool,
    now: datetime.datetime,
  ) -> GenerationRecord | None:
    """Merge step output and move the record forward from ``from_step``."""

  async def mark_failed(self, user_id: uuid.UUID, *, generation_token: str, error_message: str, now: datetime.datetime) -> GenerationRecord | None:
    """Stop a generating record and record the failure, freezing its step."""

  async def delete(self, user_id: uuid.UUID) -> bool:
    """Remove the user's record; returns whether one existed."""

  async def expire_stale(self, *, updated_before: datetime.datetime, error_message: str, now: datetime.datetime, user_id: uuid.UUID | None = None) -> list[uuid.UUID]:
    """Fail generating records that have not been updated since ``updated_before``."""


class PlansRepository(Protocol):
  """Repository contract for assembled plans."""

  async def activate_plan(self, plan: PlanRecord, *, deactivation_reason: str, generation_token: str | None = None) -> PlanRecord | None:
    """Deactivate the user's current plan and store ``plan`` as active, atomically.

    With ``generation_token`` the write only happens while that generation is
    still at FINALIZE; otherwise nothing changes and ``None`` is returned.
    """

  async def get_active(self, user_id: uuid.UUID) -> PlanRecord | None:
    """Return the user's active plan."""

  async def upsert_nutrition_goal(self, user_id: uuid.UUID, *, calories: int, protein: int, carbs: int, fat: int) -> None:
    """Mirror plan nutrition targets into the user's tracked goals."""
