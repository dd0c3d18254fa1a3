"""Shared fixtures: in-memory repositories, a scripted model and an ASGI client."""

from __future__ import annotations

import asyncio
import dataclasses
import datetime
import json
import os
import uuid
from pathlib import Path
from typing import Any

os.environ.setdefault("FITCOACH_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("FITCOACH_LOG_DIR", str(Path(__file__).resolve().parent / ".logs"))
os.environ.pop("FITCOACH_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.ai.providers.base import AIModel, SimpleModelResponse, StructuredModelResponse  # noqa: E402
from app.api.deps import get_plan_generation_service  # noqa: E402
from app.core.security import get_current_active_user  # noqa: E402
from app.generation.assembler import ResultAssembler  # noqa: E402
from app.generation.models import GenerationRecord, PlanRecord, PlanUser, StepId, utc_now  # noqa: E402
from app.generation.orchestrator import OrchestratorPolicy, PlanGenerationOrchestrator  # noqa: E402
from app.generation.steps import StepExecutor  # noqa: E402
from app.main import app  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parents[1] / "fixtures"

REFERENCE_PREFERENCES: dict[str, Any] = {
  "age": 30,
  "sex": "male",
  "height": 175,
  "weight": 70,
  "activityLevel": "moderate",
  "fitnessGoal": "weight_loss",
  "dietaryPreferences": [],
  "weeklyBudget": 60,
  "workoutDaysPerWeek": 3,
}


class FakeClock:
  def __init__(self) -> None:
    self.now = utc_now()

  def __call__(self) -> datetime.datetime:
    return self.now

  def advance(self, seconds: float) -> None:
    self.now += datetime.timedelta(seconds=seconds)


class InMemoryGenerationRepository:
  """Mirrors the conditional writes of the Postgres repository."""

  def __init__(self) -> None:
    self.records: dict[uuid.UUID, GenerationRecord] = {}

  async def get(self, user_id: uuid.UUID) -> GenerationRecord | None:
    return self.records.get(user_id)

  async def try_start(self, record: GenerationRecord) -> GenerationRecord | None:
    existing = self.records.get(record.user_id)
    if existing is not None and existing.is_generating:
      return None
    retry_count = existing.retry_count + 1 if existing is not None and existing.is_failed else 0
    stored = dataclasses.replace(record, is_generating=True, error_message=None, retry_count=retry_count, claimed_step=None, claimed_at=None, step_data={})
    self.records[record.user_id] = stored
    return stored

  async def claim_step(self, user_id: uuid.UUID, *, generation_token: str, step: StepId, now: datetime.datetime, claim_ttl_seconds: int) -> GenerationRecord | None:
    record = self.records.get(user_id)
    if record is None or record.generation_token != generation_token or record.current_step != step or not record.is_generating:
      return None
    expired_before = now - datetime.timedelta(seconds=claim_ttl_seconds)
    if record.claimed_step == int(step) and record.claimed_at is not None and record.claimed_at >= expired_before:
      return None
    stored = dataclasses.replace(record, claimed_step=int(step), claimed_at=now, updated_at=now)
    self.records[user_id] = stored
    return stored

  async def advance(self, user_id: uuid.UUID, *, generation_token: str, from_step: StepId, to_step: StepId, step_data: dict[str, Any], step_message: str, estimated_time_remaining_seconds: int, is_generating: bool, now: datetime.datetime) -> GenerationRecord | None:
    record = self.records.get(user_id)
    if record is None or record.generation_token != generation_token or record.current_step != from_step or not record.is_generating:
      return None
    stored = dataclasses.replace(
      record,
      current_step=to_step,
      step_data=json.loads(json.dumps(step_data)),
      step_message=step_message,
      estimated_time_remaining_seconds=estimated_time_remaining_seconds,
      is_generating=is_generating,
      claimed_step=None,
      claimed_at=None,
      updated_at=now,
    )
    self.records[user_id] = stored
    return stored

  async def mark_failed(self, user_id: uuid.UUID, *, generation_token: str, error_message: str, now: datetime.datetime) -> GenerationRecord | None:
    record = self.records.get(user_id)
    if record is None or record.generation_token != generation_token or not record.is_generating:
      return None
    stored = dataclasses.replace(record, is_generating=False, error_message=error_message, claimed_step=None, claimed_at=None, updated_at=now)
    self.records[user_id] = stored
    return stored

  async def delete(self, user_id: uuid.UUID) -> bool:
    return self.records.pop(user_id, None) is not None

  async def expire_stale(self, *, updated_before: datetime.datetime, error_message: str, now: datetime.datetime, user_id: uuid.UUID | None = None) -> list[uuid.UUID]:
    expired = []
    for key, record in list(self.records.items()):
      if user_id is not None and key != user_id:
        continue
      if record.is_generating and record.updated_at < updated_before:
        self.records[key] = dataclasses.replace(record, is_generating=False, error_message=error_message, claimed_step=None, claimed_at=None, updated_at=now)
        expired.append(key)
    return expired


class InMemoryPlansRepository:
  def __init__(self, generation_repo: InMemoryGenerationRepository | None = None) -> None:
    self.plans: list[PlanRecord] = []
    self.nutrition_goals: dict[uuid.UUID, dict[str, int]] = {}
    self.fail_goal_sync = False
    self.activation_gate: asyncio.Event | None = None
    self.activation_started = asyncio.Event()
    self._generation_repo = generation_repo

  async def activate_plan(self, plan: PlanRecord, *, deactivation_reason: str, generation_token: str | None = None) -> PlanRecord | None:
    self.activation_started.set()
    if self.activation_gate is not None:
      await self.activation_gate.wait()
    if generation_token is not None and self._generation_repo is not None:
      owner = self._generation_repo.records.get(plan.user_id)
      if owner is None or owner.generation_token != generation_token or not owner.is_generating or owner.current_step != StepId.FINALIZE:
        return None
    self.plans = [
      dataclasses.replace(existing, is_active=False, deactivated_at=plan.created_at, deactivation_reason=deactivation_reason) if existing.user_id == plan.user_id and existing.is_active else existing for existing in self.plans
    ]
    self.plans.append(plan)
    return plan

  async def get_active(self, user_id: uuid.UUID) -> PlanRecord | None:
    return next((plan for plan in self.plans if plan.user_id == user_id and plan.is_active), None)

  async def upsert_nutrition_goal(self, user_id: uuid.UUID, *, calories: int, protein: int, carbs: int, fat: int) -> None:
    if self.fail_goal_sync:
      raise RuntimeError("nutrition_goals unavailable")
    self.nutrition_goals[user_id] = {"calories": calories, "protein": protein, "carbs": carbs, "fat": fat}


class InMemoryEligibilitySource:
  def __init__(self, plans_repo: InMemoryPlansRepository) -> None:
    self._plans_repo = plans_repo
    self.trainer_clients: set[uuid.UUID] = set()
    self.globally_disabled = False
    self.frequency_override: int | None = None
    self.last_plan_overrides: dict[uuid.UUID, datetime.datetime] = {}
    self.gate: asyncio.Event | None = None
    self.waiting = 0

  async def has_assigned_trainer(self, user_id: uuid.UUID) -> bool:
    if self.gate is not None:
      self.waiting += 1
      await self.gate.wait()
    return user_id in self.trainer_clients

  async def is_globally_disabled(self) -> bool:
    return self.globally_disabled

  async def frequency_days(self, default: int) -> int:
    return default if self.frequency_override is None else self.frequency_override

  async def last_plan_created_at(self, user_id: uuid.UUID) -> datetime.datetime | None:
    if user_id in self.last_plan_overrides:
      return self.last_plan_overrides[user_id]
    created = [plan.created_at for plan in self._plans_repo.plans if plan.user_id == user_id]
    return max(created) if created else None


class ScriptedModel(AIModel):
  """Returns the repo's dummy fixtures; can be gated, delayed or made to fail."""

  name = "scripted"
  supports_structured_output = True

  def __init__(self) -> None:
    self.calls: list[str | None] = []
    self.delay_seconds = 0.0
    self.error: Exception | None = None
    self.gate: asyncio.Event | None = None
    self.started = asyncio.Event()

  async def generate(self, prompt: str) -> SimpleModelResponse:
    raise NotImplementedError

  async def generate_structured(self, prompt: str, schema: dict[str, Any], *, dummy_key: str | None = None) -> StructuredModelResponse:
    self.calls.append(dummy_key)
    self.started.set()
    if self.gate is not None:
      await self.gate.wait()
    if self.delay_seconds:
      await asyncio.sleep(self.delay_seconds)
    if self.error is not None:
      raise self.error
    path = FIXTURES_DIR / f"dummy_{(dummy_key or '').lower()}_response.json"
    return StructuredModelResponse(content=json.loads(path.read_text(encoding="utf-8")))


class RecordingNotifier:
  def __init__(self) -> None:
    self.dispatched: list[tuple[PlanUser, PlanRecord, bool]] = []

  def dispatch_plan_ready(self, *, user: PlanUser, plan: PlanRecord, notify_by_email: bool) -> None:
    self.dispatched.append((user, plan, notify_by_email))


@dataclasses.dataclass
class Harness:
  orchestrator: PlanGenerationOrchestrator
  repo: InMemoryGenerationRepository
  plans_repo: InMemoryPlansRepository
  eligibility: InMemoryEligibilitySource
  model: ScriptedModel
  notifier: RecordingNotifier
  clock: FakeClock


def build_harness(*, timeout_seconds: float = 2.0, fallback_enabled: bool = True) -> Harness:
  repo = InMemoryGenerationRepository()
  plans_repo = InMemoryPlansRepository(repo)
  eligibility = InMemoryEligibilitySource(plans_repo)
  model = ScriptedModel()
  notifier = RecordingNotifier()
  clock = FakeClock()
  orchestrator = PlanGenerationOrchestrator(
    repo=repo,
    plans_repo=plans_repo,
    eligibility_source=eligibility,
    executor=StepExecutor(model_factory=lambda: model, timeout_seconds=timeout_seconds, fallback_enabled=fallback_enabled),
    assembler=ResultAssembler(plans_repo=plans_repo, notifier=notifier),
    policy=OrchestratorPolicy(claim_ttl_seconds=60, stale_record_seconds=900, plan_frequency_days=30),
    clock=clock,
  )
  return Harness(orchestrator=orchestrator, repo=repo, plans_repo=plans_repo, eligibility=eligibility, model=model, notifier=notifier, clock=clock)


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def harness() -> Harness:
  return build_harness()


@pytest.fixture
def user() -> PlanUser:
  return PlanUser(id=uuid.uuid4(), email="member@example.com", full_name="Sam Member")


@pytest.fixture
def reference_preferences() -> dict[str, Any]:
  return dict(REFERENCE_PREFERENCES)


@pytest.fixture
async def async_client(harness: Harness, user: PlanUser):
  app.dependency_overrides[get_plan_generation_service] = lambda: harness.orchestrator
  app.dependency_overrides[get_current_active_user] = lambda: user
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()


@pytest.fixture
def harness_factory():
  return build_harness
