"""Per-user plan generation state machine driven one step per call."""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.ai.pipeline.contracts import PlanPreferences, dump_step_data, load_step_data
from app.config import Settings
from app.generation.assembler import ResultAssembler
from app.generation.eligibility import EligibilityDecision, EligibilitySource, check_eligibility
from app.generation.errors import (
  AlreadyGeneratingError,
  IneligibleError,
  NotCompleteError,
  NotGeneratingError,
  PlanGenerationError,
  PlanNotFoundError,
  StaleRecordError,
)
from app.generation.models import GenerationRecord, GenerationStatus, PlanRecord, PlanUser, StepId, StepProgress, utc_now
from app.generation.progress import estimated_time_remaining, next_step, output_key_for, step_message
from app.generation.reconciler import StaleRecordWatchdog
from app.generation.steps import StepExecutor
from app.storage.generation_repo import GenerationRepository, PlansRepository
from app.utils.ids import generate_generation_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorPolicy:
  """Tunables for stepping, claims and staleness."""

  claim_ttl_seconds: int = 60
  stale_record_seconds: int = 900
  plan_frequency_days: int = 30

  @classmethod
  def from_settings(cls, settings: Settings) -> OrchestratorPolicy:
    return cls(
      claim_ttl_seconds=settings.step_claim_ttl_seconds,
      stale_record_seconds=settings.stale_record_seconds,
      plan_frequency_days=settings.plan_frequency_days,
    )


def _progress(record: GenerationRecord, *, recomputed: bool = True) -> StepProgress:
  return StepProgress(
    step=record.current_step,
    message=record.step_message,
    estimated_time_remaining_seconds=record.estimated_time_remaining_seconds,
    is_generating=record.is_generating,
    error_message=record.error_message,
    recomputed=recomputed,
  )


class PlanGenerationOrchestrator:
  """Advance a user's generation record through the pipeline, one step per ``continue``.

  The durable record is the only state shared between calls. Every write is a
  compare-and-swap on the record's generation token, so a reset or restart that
  lands while a step is executing makes the step's result a no-op.
  """

  def __init__(
    self,
    *,
    repo: GenerationRepository,
    plans_repo: PlansRepository,
    eligibility_source: EligibilitySource,
    executor: StepExecutor,
    assembler: ResultAssembler,
    policy: OrchestratorPolicy | None = None,
    clock: Callable[[], datetime.datetime] = utc_now,
  ) -> None:
    self._repo = repo
    self._plans_repo = plans_repo
    self._eligibility_source = eligibility_source
    self._executor = executor
    self._assembler = assembler
    self._policy = policy or OrchestratorPolicy()
    self._clock = clock
    self._watchdog = StaleRecordWatchdog(repo, stale_after_seconds=self._policy.stale_record_seconds)

  async def check_eligibility(self, user: PlanUser) -> EligibilityDecision:
    return await check_eligibility(self._eligibility_source, user, default_frequency_days=self._policy.plan_frequency_days, now=self._clock())

  async def start(self, user: PlanUser, preferences: PlanPreferences) -> StepProgress:
    now = self._clock()
    existing = await self._watchdog.expire_if_stale(await self._repo.get(user.id), now=now)
    if existing is not None and existing.is_generating:
      raise AlreadyGeneratingError("Plan generation is already in progress")

    decision = await self.check_eligibility(user)
    if not decision.can_create:
      raise IneligibleError(decision.message or "You cannot generate a new plan right now", details={"daysRemaining": decision.days_remaining, "hasManagedPlan": decision.has_managed_plan, "globallyDisabled": decision.globally_disabled})

    record = GenerationRecord(
      user_id=user.id,
      is_generating=True,
      current_step=StepId.INITIALIZE,
      step_message=step_message(StepId.INITIALIZE),
      estimated_time_remaining_seconds=estimated_time_remaining(StepId.INITIALIZE),
      generation_token=generate_generation_token(),
      input_payload=preferences.model_dump(mode="json"),
      started_at=now,
      updated_at=now,
    )
    stored = await self._repo.try_start(record)
    if stored is None:
      # A concurrent start committed between the read and the guarded write.
      raise AlreadyGeneratingError("Plan generation is already in progress")

    logger.info("Plan generation started user_id=%s retry_count=%s", user.id, stored.retry_count)
    return _progress(stored)

  async def continue_generation(self, user: PlanUser) -> StepProgress:
    """Execute the unit of work for the current step and move the record forward.

    Failures inside a step are recorded on the record and reported in the
    returned progress, never raised.
    """
    now = self._clock()
    record = await self._repo.get(user.id)
    if record is None or not record.is_generating:
      raise NotGeneratingError("No plan generation is in progress")

    if self._watchdog.is_stale(record, now=now):
      await self._watchdog.expire_if_stale(record, now=now)
      raise StaleRecordError("Plan generation stopped making progress and was reset; start again")

    step = record.current_step
    claimed = await self._repo.claim_step(user.id, generation_token=record.generation_token, step=step, now=now, claim_ttl_seconds=self._policy.claim_ttl_seconds)
    if claimed is None:
      logger.info("Step %s for user %s is already executing; re-emitting progress", step.name, user.id)
      return _progress(await self._repo.get(user.id) or record, recomputed=False)

    if step == StepId.FINALIZE:
      return await self._finalize(user, claimed)

    try:
      preferences = PlanPreferences.model_validate(claimed.input_payload)
      step_data = load_step_data(claimed.step_data)
    except ValidationError as exc:
      return await self._fail(claimed, f"Stored generation state is invalid: {exc.error_count()} error(s)")

    key = output_key_for(step)
    recomputed = key not in step_data
    if recomputed:
      try:
        step_data[key] = await self._executor.execute(step, preferences, step_data)
      except PlanGenerationError as exc:
        return await self._fail(claimed, exc.message)
      except Exception as exc:  # noqa: BLE001
        logger.error("Step %s failed for user %s", step.name, user.id, exc_info=True)
        return await self._fail(claimed, str(exc) or type(exc).__name__)

    to_step = next_step(step)
    advanced = await self._advance(claimed, from_step=step, to_step=to_step, step_data=dump_step_data(step_data), is_generating=True)
    if advanced is None:
      return await self._discarded(user.id, step)

    if to_step == StepId.FINALIZE:
      # Assembly runs in the same call; claim it like any other step.
      finalizing = await self._repo.claim_step(user.id, generation_token=advanced.generation_token, step=StepId.FINALIZE, now=self._clock(), claim_ttl_seconds=self._policy.claim_ttl_seconds)
      if finalizing is None:
        return _progress(await self._repo.get(user.id) or advanced, recomputed=recomputed)
      return await self._finalize(user, finalizing)
    return _progress(advanced, recomputed=recomputed)

  async def status(self, user: PlanUser) -> GenerationStatus:
    record = await self._watchdog.expire_if_stale(await self._repo.get(user.id), now=self._clock())
    if record is None:
      return GenerationStatus.idle()
    return GenerationStatus.from_record(record)

  async def result(self, user: PlanUser) -> PlanRecord:
    record = await self._repo.get(user.id)
    if record is None:
      raise NotGeneratingError("No plan generation has been started")
    if not record.is_complete:
      raise NotCompleteError("Plan generation has not completed", details={"currentStep": int(record.current_step)})
    plan = await self._plans_repo.get_active(user.id)
    if plan is None:
      raise PlanNotFoundError("No active plan found")
    return plan

  async def reset(self, user: PlanUser) -> bool:
    deleted = await self._repo.delete(user.id)
    if deleted:
      logger.info("Plan generation reset user_id=%s", user.id)
    return deleted

  async def advance_until_done(self, user: PlanUser, *, max_calls: int = 16) -> StepProgress | None:
    """Keep calling ``continue`` until the record stops generating."""
    progress: StepProgress | None = None
    for _ in range(max_calls):
      try:
        progress = await self.continue_generation(user)
      except (NotGeneratingError, StaleRecordError):
        return progress
      if not progress.is_generating:
        return progress
      if not progress.recomputed:
        # Another caller holds the step; let it finish.
        return progress
    logger.warning("Auto-advance for user %s stopped after %d calls", user.id, max_calls)
    return progress

  async def sweep_stale(self) -> list[uuid.UUID]:
    return await self._watchdog.sweep(now=self._clock())

  async def _finalize(self, user: PlanUser, record: GenerationRecord) -> StepProgress:
    try:
      preferences = PlanPreferences.model_validate(record.input_payload)
      assembled = self._assembler.assemble(preferences, load_step_data(record.step_data))
    except ValidationError as exc:
      return await self._fail(record, f"Stored generation state is invalid: {exc.error_count()} error(s)")
    except PlanGenerationError as exc:
      return await self._fail(record, exc.message)

    # The token check and the plan write share one transaction.
    try:
      committed = await self._assembler.commit(user, assembled, generation_token=record.generation_token)
    except Exception as exc:  # noqa: BLE001
      logger.error("Plan commit failed for user %s", user.id, exc_info=True)
      return await self._fail(record, f"Failed to store plan: {exc}")
    if committed is None:
      return await self._discarded(user.id, StepId.FINALIZE)

    completed = await self._advance(record, from_step=StepId.FINALIZE, to_step=StepId.COMPLETE, step_data=record.step_data, is_generating=False)
    if completed is None:
      return await self._discarded(user.id, StepId.FINALIZE)
    logger.info("Plan generation complete user_id=%s warnings=%d", user.id, len(assembled.warnings))
    return _progress(completed)

  async def _advance(self, record: GenerationRecord, *, from_step: StepId, to_step: StepId, step_data: dict[str, Any], is_generating: bool) -> GenerationRecord | None:
    return await self._repo.advance(
      record.user_id,
      generation_token=record.generation_token,
      from_step=from_step,
      to_step=to_step,
      step_data=step_data,
      step_message=step_message(to_step),
      estimated_time_remaining_seconds=estimated_time_remaining(to_step),
      is_generating=is_generating,
      now=self._clock(),
    )

  async def _fail(self, record: GenerationRecord, error_message: str) -> StepProgress:
    logger.warning("Plan generation failed user_id=%s step=%s: %s", record.user_id, record.current_step.name, error_message)
    failed = await self._repo.mark_failed(record.user_id, generation_token=record.generation_token, error_message=error_message, now=self._clock())
    if failed is None:
      return await self._discarded(record.user_id, record.current_step)
    return _progress(failed)

  async def _discarded(self, user_id: uuid.UUID, step: StepId) -> StepProgress:
    logger.info("Discarding step %s result for user %s; record was reset or restarted", step.name, user_id)
    latest = await self._repo.get(user_id)
    if latest is None:
      raise NotGeneratingError("Plan generation was reset")
    return _progress(latest, recomputed=False)
