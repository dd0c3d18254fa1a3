"""Step orchestration: start guard, stepping, failures, resets and staleness."""

from __future__ import annotations

import asyncio

import pytest

from app.ai.pipeline.contracts import PlanPreferences, load_step_data
from app.generation.errors import AlreadyGeneratingError, IneligibleError, NotCompleteError, NotGeneratingError, PlanNotFoundError, StaleRecordError
from app.generation.models import StepId


@pytest.fixture
def preferences(reference_preferences) -> PlanPreferences:
  return PlanPreferences.model_validate(reference_preferences)


async def _run_to_completion(orchestrator, user) -> list:
  progress = []
  for _ in range(10):
    step = await orchestrator.continue_generation(user)
    progress.append(step)
    if not step.is_generating:
      break
  return progress


@pytest.mark.anyio
async def test_status_is_idle_without_record(harness, user) -> None:
  status = await harness.orchestrator.status(user)
  assert not status.is_generating
  assert status.current_step == StepId.INITIALIZE
  assert status.total_steps == 5


@pytest.mark.anyio
async def test_start_creates_generating_record(harness, user, preferences) -> None:
  progress = await harness.orchestrator.start(user, preferences)
  assert progress.step == StepId.INITIALIZE
  assert progress.message == "Initializing plan generation"

  status = await harness.orchestrator.status(user)
  assert status.is_generating
  assert status.estimated_time_remaining_seconds == 195
  assert status.started_at == harness.clock.now


@pytest.mark.anyio
async def test_second_start_is_rejected_and_leaves_record_untouched(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  before = harness.repo.records[user.id]
  with pytest.raises(AlreadyGeneratingError):
    await harness.orchestrator.start(user, preferences)
  assert harness.repo.records[user.id] == before


@pytest.mark.anyio
async def test_concurrent_starts_leave_one_generating_record(harness, user, preferences) -> None:
  harness.eligibility.gate = asyncio.Event()
  first = asyncio.create_task(harness.orchestrator.start(user, preferences))
  second = asyncio.create_task(harness.orchestrator.start(user, preferences))
  # Hold both callers past the in-progress check so only the guarded write separates them.
  while harness.eligibility.waiting < 2:
    await asyncio.sleep(0)
  harness.eligibility.gate.set()
  results = await asyncio.gather(first, second, return_exceptions=True)

  started = [result for result in results if not isinstance(result, BaseException)]
  rejected = [result for result in results if isinstance(result, AlreadyGeneratingError)]
  assert len(started) == 1
  assert len(rejected) == 1
  record = harness.repo.records[user.id]
  assert record.is_generating
  assert record.current_step == StepId.INITIALIZE


@pytest.mark.anyio
async def test_ineligible_start_creates_nothing(harness, user, preferences) -> None:
  harness.eligibility.trainer_clients.add(user.id)
  with pytest.raises(IneligibleError) as exc_info:
    await harness.orchestrator.start(user, preferences)
  assert exc_info.value.details["hasManagedPlan"] is True
  assert user.id not in harness.repo.records


@pytest.mark.anyio
async def test_full_run_reaches_complete_and_activates_plan(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  progress = await _run_to_completion(harness.orchestrator, user)

  assert [step.step for step in progress] == [StepId.NUTRITION_CALC, StepId.WORKOUT_GEN, StepId.MEAL_GEN, StepId.COMPLETE]
  assert progress[0].estimated_time_remaining_seconds == 180
  assert progress[-1].message == "Plan generation complete"
  assert progress[-1].estimated_time_remaining_seconds == 0
  assert harness.model.calls == ["WORKOUT_PLANNER", "MEAL_PLANNER"]

  record = harness.repo.records[user.id]
  assert record.current_step == StepId.COMPLETE
  assert not record.is_generating
  step_data = load_step_data(record.step_data)
  assert set(step_data) == {"nutrition", "workout", "meals", "shopping"}

  plan = await harness.orchestrator.result(user)
  assert plan.is_active
  assert plan.nutrition["calories"] == 2044
  assert plan.workout_plan["source"] == "model"
  assert plan.assembly_warnings == []
  assert len(harness.notifier.dispatched) == 1


@pytest.mark.anyio
async def test_new_run_deactivates_prior_plan(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  await _run_to_completion(harness.orchestrator, user)
  first = await harness.orchestrator.result(user)

  # The 30-day interval would otherwise block the second run.
  with pytest.raises(IneligibleError):
    await harness.orchestrator.start(user, preferences)
  harness.eligibility.frequency_override = 0

  await harness.orchestrator.start(user, preferences)
  await _run_to_completion(harness.orchestrator, user)
  second = await harness.orchestrator.result(user)

  assert second.id != first.id
  assert [plan.id for plan in harness.plans_repo.plans if plan.is_active] == [second.id]


@pytest.mark.anyio
async def test_continue_without_record_is_rejected(harness, user) -> None:
  with pytest.raises(NotGeneratingError):
    await harness.orchestrator.continue_generation(user)


@pytest.mark.anyio
async def test_concurrent_continue_issues_one_model_call(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)

  harness.model.gate = asyncio.Event()
  first = asyncio.create_task(harness.orchestrator.continue_generation(user))
  await harness.model.started.wait()

  duplicate = await harness.orchestrator.continue_generation(user)
  assert not duplicate.recomputed
  assert duplicate.step == StepId.NUTRITION_CALC
  assert duplicate.is_generating

  harness.model.gate.set()
  progress = await first
  assert progress.step == StepId.WORKOUT_GEN
  assert harness.model.calls == ["WORKOUT_PLANNER"]


@pytest.mark.anyio
async def test_failure_freezes_step_and_records_error(harness_factory, user, preferences) -> None:
  harness = harness_factory(fallback_enabled=False)
  harness.model.error = RuntimeError("provider down")
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)

  progress = await harness.orchestrator.continue_generation(user)
  assert not progress.is_generating
  assert progress.step == StepId.NUTRITION_CALC
  assert progress.error_message == "WorkoutPlanner failed: provider down"

  status = await harness.orchestrator.status(user)
  assert status.error_message == progress.error_message
  assert status.current_step == StepId.NUTRITION_CALC
  with pytest.raises(NotGeneratingError):
    await harness.orchestrator.continue_generation(user)
  with pytest.raises(NotCompleteError):
    await harness.orchestrator.result(user)

  # Restarting after a failure counts as a retry.
  harness.model.error = None
  restarted = await harness.orchestrator.start(user, preferences)
  assert restarted.step == StepId.INITIALIZE
  assert harness.repo.records[user.id].retry_count == 1
  assert harness.repo.records[user.id].error_message is None


@pytest.mark.anyio
async def test_timeout_falls_back_to_template_plan(harness_factory, user, preferences) -> None:
  harness = harness_factory(timeout_seconds=0.05)
  harness.model.delay_seconds = 1.0
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)

  progress = await harness.orchestrator.continue_generation(user)
  assert progress.step == StepId.WORKOUT_GEN
  assert progress.error_message is None
  workout = load_step_data(harness.repo.records[user.id].step_data)["workout"]
  assert workout.source == "fallback"
  assert len(workout.weekly_schedule) == 7


@pytest.mark.anyio
async def test_timeout_without_fallback_fails_the_step(harness_factory, user, preferences) -> None:
  harness = harness_factory(timeout_seconds=0.05, fallback_enabled=False)
  harness.model.delay_seconds = 1.0
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)

  progress = await harness.orchestrator.continue_generation(user)
  assert not progress.is_generating
  assert "timed out" in progress.error_message


@pytest.mark.anyio
async def test_reset_discards_in_flight_result(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)

  harness.model.gate = asyncio.Event()
  in_flight = asyncio.create_task(harness.orchestrator.continue_generation(user))
  await harness.model.started.wait()

  assert await harness.orchestrator.reset(user)
  await harness.orchestrator.start(user, preferences)
  fresh_token = harness.repo.records[user.id].generation_token

  harness.model.gate.set()
  progress = await in_flight
  assert not progress.recomputed
  record = harness.repo.records[user.id]
  assert record.generation_token == fresh_token
  assert record.current_step == StepId.INITIALIZE
  assert record.step_data == {}


@pytest.mark.anyio
async def test_reset_during_plan_commit_activates_nothing(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  for _ in range(3):
    await harness.orchestrator.continue_generation(user)
  assert harness.repo.records[user.id].current_step == StepId.MEAL_GEN

  harness.plans_repo.activation_gate = asyncio.Event()
  finalizing = asyncio.create_task(harness.orchestrator.continue_generation(user))
  await harness.plans_repo.activation_started.wait()
  assert harness.repo.records[user.id].current_step == StepId.FINALIZE

  assert await harness.orchestrator.reset(user)
  await harness.orchestrator.start(user, preferences)
  fresh_token = harness.repo.records[user.id].generation_token

  harness.plans_repo.activation_gate.set()
  progress = await finalizing
  assert not progress.recomputed
  assert harness.plans_repo.plans == []
  assert harness.plans_repo.nutrition_goals == {}
  assert harness.notifier.dispatched == []
  record = harness.repo.records[user.id]
  assert record.generation_token == fresh_token
  assert record.current_step == StepId.INITIALIZE
  assert record.is_generating


@pytest.mark.anyio
async def test_reset_always_succeeds(harness, user) -> None:
  assert not await harness.orchestrator.reset(user)
  assert (await harness.orchestrator.status(user)).current_step == StepId.INITIALIZE


@pytest.mark.anyio
async def test_reset_clears_failed_record(harness_factory, user, preferences) -> None:
  harness = harness_factory(fallback_enabled=False)
  harness.model.error = RuntimeError("provider down")
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)
  failed = await harness.orchestrator.continue_generation(user)
  assert failed.error_message is not None

  assert await harness.orchestrator.reset(user)
  status = await harness.orchestrator.status(user)
  assert not status.is_generating
  assert status.error_message is None
  assert status.current_step == StepId.INITIALIZE


@pytest.mark.anyio
async def test_reset_mid_run_clears_progress(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  await harness.orchestrator.continue_generation(user)
  await harness.orchestrator.continue_generation(user)
  assert harness.repo.records[user.id].current_step == StepId.WORKOUT_GEN

  assert await harness.orchestrator.reset(user)
  status = await harness.orchestrator.status(user)
  assert not status.is_generating
  assert status.error_message is None
  assert status.current_step == StepId.INITIALIZE

  # A reset is not a failure, so the next start is not counted as a retry.
  await harness.orchestrator.start(user, preferences)
  assert harness.repo.records[user.id].retry_count == 0


@pytest.mark.anyio
async def test_complete_record_without_active_plan_is_not_found(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  await _run_to_completion(harness.orchestrator, user)
  harness.plans_repo.plans.clear()
  with pytest.raises(PlanNotFoundError):
    await harness.orchestrator.result(user)


@pytest.mark.anyio
async def test_stale_record_times_out_lazily(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  harness.clock.advance(901)

  status = await harness.orchestrator.status(user)
  assert not status.is_generating
  assert status.error_message == "timed out"

  # A fresh start is allowed once the watchdog has failed the record.
  await harness.orchestrator.start(user, preferences)
  assert harness.repo.records[user.id].is_generating


@pytest.mark.anyio
async def test_continue_on_stale_record_raises(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  harness.clock.advance(901)
  with pytest.raises(StaleRecordError):
    await harness.orchestrator.continue_generation(user)
  assert harness.repo.records[user.id].error_message == "timed out"


@pytest.mark.anyio
async def test_sweep_expires_only_stale_records(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  assert await harness.orchestrator.sweep_stale() == []
  harness.clock.advance(1000)
  assert await harness.orchestrator.sweep_stale() == [user.id]


@pytest.mark.anyio
async def test_advance_until_done_completes_the_run(harness, user, preferences) -> None:
  await harness.orchestrator.start(user, preferences)
  progress = await harness.orchestrator.advance_until_done(user)
  assert progress.step == StepId.COMPLETE
  assert not progress.is_generating
