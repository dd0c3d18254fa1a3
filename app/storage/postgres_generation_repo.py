"""Postgres-backed repositories for generation records and plans using SQLAlchemy."""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any

from sqlalchemy import case, delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.generation.models import GenerationRecord, PlanRecord, StepId
from app.schema.plans import FitnessPlan, PlanGenerationStatus
from app.schema.sql import NutritionGoal
from app.storage.generation_repo import GenerationRepository, PlansRepository

logger = logging.getLogger(__name__)


def _require_session_factory() -> async_sessionmaker[AsyncSession]:
  session_factory = get_session_factory()
  if session_factory is None:
    raise RuntimeError("Database not initialized")
  return session_factory


class PostgresGenerationRepository(GenerationRepository):
  """Persist generation records to ``plan_generation_status``."""

  def __init__(self) -> None:
    self._session_factory = _require_session_factory()

  async def get(self, user_id: uuid.UUID) -> GenerationRecord | None:
    async with self._session_factory() as session:
      row = await session.get(PlanGenerationStatus, user_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def try_start(self, record: GenerationRecord) -> GenerationRecord | None:
    values = {
      "user_id": record.user_id,
      "is_generating": True,
      "current_step": int(record.current_step),
      "total_steps": record.total_steps,
      "step_message": record.step_message,
      "estimated_time_remaining_seconds": record.estimated_time_remaining_seconds,
      "error_message": None,
      "retry_count": 0,
      "generation_token": record.generation_token,
      "claimed_step": None,
      "claimed_at": None,
      "input_json": record.input_payload,
      "step_data_json": {},
      "started_at": record.started_at,
      "updated_at": record.updated_at,
    }
    # Overwrite only finished/failed rows; a generating row makes the upsert a no-op.
    overwrite = {key: value for key, value in values.items() if key not in {"user_id", "retry_count"}}
    overwrite["retry_count"] = case((PlanGenerationStatus.error_message.is_not(None), PlanGenerationStatus.retry_count + 1), else_=0)
    stmt = (
      insert(PlanGenerationStatus)
      .values(values)
      .on_conflict_do_update(index_elements=["user_id"], set_=overwrite, where=PlanGenerationStatus.is_generating.is_(False))
      .returning(*PlanGenerationStatus.__table__.c)
    )
    async with self._session_factory() as session:
      row = (await session.execute(stmt)).first()
      await session.commit()
      if row is None:
        return None
      return self._model_to_record(row)

  async def claim_step(self, user_id: uuid.UUID, *, generation_token: str, step: StepId, now: datetime.datetime, claim_ttl_seconds: int) -> GenerationRecord | None:
    claim_expired_before = now - datetime.timedelta(seconds=claim_ttl_seconds)
    async with self._session_factory() as session:
      stmt = (
        select(PlanGenerationStatus)
        .where(
          PlanGenerationStatus.user_id == user_id,
          PlanGenerationStatus.generation_token == generation_token,
          PlanGenerationStatus.current_step == int(step),
          PlanGenerationStatus.is_generating.is_(True),
          or_(PlanGenerationStatus.claimed_step.is_(None), PlanGenerationStatus.claimed_step != int(step), PlanGenerationStatus.claimed_at < claim_expired_before),
        )
        .with_for_update(skip_locked=True)
      )
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      row.claimed_step = int(step)
      row.claimed_at = now
      row.updated_at = now
      await session.commit()
      await session.refresh(row)
      return self._model_to_record(row)

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
    async with self._session_factory() as session:
      row = await self._locked_generating_row(session, user_id=user_id, generation_token=generation_token, step=from_step)
      if row is None:
        return None
      row.current_step = int(to_step)
      row.step_data_json = step_data
      row.step_message = step_message
      row.estimated_time_remaining_seconds = estimated_time_remaining_seconds
      row.is_generating = is_generating
      row.claimed_step = None
      row.claimed_at = None
      row.updated_at = now
      await session.commit()
      await session.refresh(row)
      return self._model_to_record(row)

  async def mark_failed(self, user_id: uuid.UUID, *, generation_token: str, error_message: str, now: datetime.datetime) -> GenerationRecord | None:
    async with self._session_factory() as session:
      row = await self._locked_generating_row(session, user_id=user_id, generation_token=generation_token, step=None)
      if row is None:
        return None
      row.is_generating = False
      row.error_message = error_message
      row.claimed_step = None
      row.claimed_at = None
      row.updated_at = now
      await session.commit()
      await session.refresh(row)
      return self._model_to_record(row)

  async def delete(self, user_id: uuid.UUID) -> bool:
    async with self._session_factory() as session:
      result = await session.execute(delete(PlanGenerationStatus).where(PlanGenerationStatus.user_id == user_id))
      await session.commit()
      return bool(result.rowcount)

  async def expire_stale(self, *, updated_before: datetime.datetime, error_message: str, now: datetime.datetime, user_id: uuid.UUID | None = None) -> list[uuid.UUID]:
    stmt = (
      update(PlanGenerationStatus)
      .where(PlanGenerationStatus.is_generating.is_(True), PlanGenerationStatus.updated_at < updated_before)
      .values(is_generating=False, error_message=error_message, claimed_step=None, claimed_at=None, updated_at=now)
      .returning(PlanGenerationStatus.user_id)
      .execution_options(synchronize_session=False)
    )
    if user_id is not None:
      stmt = stmt.where(PlanGenerationStatus.user_id == user_id)
    async with self._session_factory() as session:
      expired = list((await session.execute(stmt)).scalars().all())
      await session.commit()
      return expired

  async def _locked_generating_row(self, session: AsyncSession, *, user_id: uuid.UUID, generation_token: str, step: StepId | None) -> PlanGenerationStatus | None:
    stmt = select(PlanGenerationStatus).where(PlanGenerationStatus.user_id == user_id, PlanGenerationStatus.generation_token == generation_token, PlanGenerationStatus.is_generating.is_(True))
    if step is not None:
      stmt = stmt.where(PlanGenerationStatus.current_step == int(step))
    return (await session.execute(stmt.with_for_update())).scalar_one_or_none()

  @staticmethod
  def _model_to_record(row: Any) -> GenerationRecord:
    return GenerationRecord(
      user_id=row.user_id,
      is_generating=bool(row.is_generating),
      current_step=StepId(row.current_step),
      total_steps=int(row.total_steps),
      step_message=row.step_message or "",
      estimated_time_remaining_seconds=int(row.estimated_time_remaining_seconds or 0),
      error_message=row.error_message,
      retry_count=int(row.retry_count or 0),
      generation_token=row.generation_token,
      claimed_step=row.claimed_step,
      claimed_at=row.claimed_at,
      input_payload=dict(row.input_json or {}),
      step_data=dict(row.step_data_json or {}),
      started_at=row.started_at,
      updated_at=row.updated_at,
    )


class PostgresPlansRepository(PlansRepository):
  """Persist assembled plans to ``fitness_plans``."""

  def __init__(self) -> None:
    self._session_factory = _require_session_factory()

  async def activate_plan(self, plan: PlanRecord, *, deactivation_reason: str, generation_token: str | None = None) -> PlanRecord | None:
    async with self._session_factory() as session:
      try:
        row = await self._activate_in_session(session, plan=plan, deactivation_reason=deactivation_reason, generation_token=generation_token)
      except IntegrityError:
        # A concurrent activation committed first; its plan is now the one to deactivate.
        await session.rollback()
        logger.warning("Concurrent plan activation detected user_id=%s; retrying", plan.user_id)
        row = await self._activate_in_session(session, plan=plan, deactivation_reason=deactivation_reason, generation_token=generation_token)
      if row is None:
        return None
      return self._model_to_record(row)

  async def _activate_in_session(self, session: AsyncSession, *, plan: PlanRecord, deactivation_reason: str, generation_token: str | None) -> FitnessPlan | None:
    if generation_token is not None:
      # The generation row stays locked until commit; a reset or restart queues behind it.
      owner = select(PlanGenerationStatus.user_id).where(
        PlanGenerationStatus.user_id == plan.user_id,
        PlanGenerationStatus.generation_token == generation_token,
        PlanGenerationStatus.is_generating.is_(True),
        PlanGenerationStatus.current_step == int(StepId.FINALIZE),
      )
      if (await session.execute(owner.with_for_update())).scalar_one_or_none() is None:
        await session.rollback()
        return None

    # Both statements share one transaction so a reader never sees zero or two active plans.
    await session.execute(
      update(FitnessPlan)
      .where(FitnessPlan.user_id == plan.user_id, FitnessPlan.is_active.is_(True))
      .values(is_active=False, deactivated_at=plan.created_at, deactivation_reason=deactivation_reason)
      .execution_options(synchronize_session=False)
    )
    row = FitnessPlan(
      id=plan.id,
      user_id=plan.user_id,
      preferences=plan.preferences,
      nutrition=plan.nutrition,
      workout_plan=plan.workout_plan,
      meal_plan=plan.meal_plan,
      assembly_warnings=list(plan.assembly_warnings),
      is_active=True,
      created_at=plan.created_at,
    )
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row

  async def get_active(self, user_id: uuid.UUID) -> PlanRecord | None:
    async with self._session_factory() as session:
      stmt = select(FitnessPlan).where(FitnessPlan.user_id == user_id, FitnessPlan.is_active.is_(True)).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return self._model_to_record(row)

  async def upsert_nutrition_goal(self, user_id: uuid.UUID, *, calories: int, protein: int, carbs: int, fat: int) -> None:
    values = {"user_id": user_id, "calories": calories, "protein": protein, "carbs": carbs, "fat": fat}
    stmt = insert(NutritionGoal).values(values).on_conflict_do_update(index_elements=["user_id"], set_={"calories": calories, "protein": protein, "carbs": carbs, "fat": fat})
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

  @staticmethod
  def _model_to_record(row: FitnessPlan) -> PlanRecord:
    return PlanRecord(
      id=row.id,
      user_id=row.user_id,
      preferences=dict(row.preferences or {}),
      nutrition=dict(row.nutrition or {}),
      workout_plan=dict(row.workout_plan or {}),
      meal_plan=dict(row.meal_plan or {}),
      assembly_warnings=list(row.assembly_warnings or []),
      is_active=bool(row.is_active),
      created_at=row.created_at,
      deactivated_at=row.deactivated_at,
      deactivation_reason=row.deactivation_reason,
    )
