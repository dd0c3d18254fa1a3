"""Statement shape of the Postgres repositories' guarded writes."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql

from app.generation.models import GenerationRecord, PlanRecord, StepId, utc_now
from app.storage.postgres_generation_repo import PostgresGenerationRepository, PostgresPlansRepository


@pytest.fixture
def db_session():
  session = MagicMock()
  session.execute = AsyncMock()
  session.commit = AsyncMock()
  session.rollback = AsyncMock()
  session.refresh = AsyncMock()
  return session


@pytest.fixture
def session_factory(db_session):
  factory = MagicMock()
  factory.return_value.__aenter__.return_value = db_session
  with patch("app.storage.postgres_generation_repo.get_session_factory", return_value=factory):
    yield factory


def _compiled(stmt) -> str:
  return str(stmt.compile(dialect=postgresql.dialect()))


def _record(user_id: uuid.UUID) -> GenerationRecord:
  now = utc_now()
  return GenerationRecord(
    user_id=user_id,
    is_generating=True,
    current_step=StepId.INITIALIZE,
    step_message="Initializing plan generation",
    estimated_time_remaining_seconds=195,
    generation_token="token-1",
    input_payload={"age": 30},
    started_at=now,
    updated_at=now,
  )


def _plan(user_id: uuid.UUID) -> PlanRecord:
  return PlanRecord(id=uuid.uuid4(), user_id=user_id, preferences={}, nutrition={"calories": 2044}, workout_plan={}, meal_plan={}, is_active=True, created_at=utc_now())


@pytest.mark.anyio
async def test_try_start_upsert_only_overwrites_idle_rows(session_factory, db_session):
  result = MagicMock()
  result.first.return_value = None
  db_session.execute.return_value = result

  stored = await PostgresGenerationRepository().try_start(_record(uuid.uuid4()))

  assert stored is None
  sql = _compiled(db_session.execute.await_args.args[0])
  assert "ON CONFLICT (user_id) DO UPDATE" in sql
  assert "WHERE plan_generation_status.is_generating IS false" in sql
  assert "CASE WHEN" in sql
  db_session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_try_start_returns_inserted_row(session_factory, db_session):
  user_id = uuid.uuid4()
  record = _record(user_id)
  row = SimpleNamespace(
    user_id=user_id,
    is_generating=True,
    current_step=0,
    total_steps=5,
    step_message=record.step_message,
    estimated_time_remaining_seconds=195,
    error_message=None,
    retry_count=0,
    generation_token="token-1",
    claimed_step=None,
    claimed_at=None,
    input_json={"age": 30},
    step_data_json={},
    started_at=record.started_at,
    updated_at=record.updated_at,
  )
  result = MagicMock()
  result.first.return_value = row
  db_session.execute.return_value = result

  stored = await PostgresGenerationRepository().try_start(record)

  assert stored == record


@pytest.mark.anyio
async def test_activation_skipped_when_generation_no_longer_owns_row(session_factory, db_session):
  lock_result = MagicMock()
  lock_result.scalar_one_or_none.return_value = None
  db_session.execute.return_value = lock_result

  stored = await PostgresPlansRepository().activate_plan(_plan(uuid.uuid4()), deactivation_reason="replaced", generation_token="token-1")

  assert stored is None
  sql = _compiled(db_session.execute.await_args.args[0])
  assert "FOR UPDATE" in sql
  assert "plan_generation_status.generation_token" in sql
  db_session.execute.assert_awaited_once()
  db_session.add.assert_not_called()
  db_session.commit.assert_not_awaited()
  db_session.rollback.assert_awaited_once()


@pytest.mark.anyio
async def test_activation_locks_generation_row_before_writing(session_factory, db_session):
  plan = _plan(uuid.uuid4())
  lock_result = MagicMock()
  lock_result.scalar_one_or_none.return_value = plan.user_id
  db_session.execute.side_effect = [lock_result, MagicMock()]

  stored = await PostgresPlansRepository().activate_plan(plan, deactivation_reason="replaced", generation_token="token-1")

  assert stored.id == plan.id
  assert stored.is_active
  first, second = (call.args[0] for call in db_session.execute.await_args_list)
  assert "FOR UPDATE" in _compiled(first)
  assert _compiled(second).startswith("UPDATE fitness_plans")
  db_session.add.assert_called_once()
  db_session.commit.assert_awaited_once()
