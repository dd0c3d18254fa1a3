"""Postgres reads backing the eligibility gate."""

from __future__ import annotations

import datetime
import logging
import uuid

from sqlalchemy import exists, func, select

from app.core.database import get_session_factory
from app.generation.eligibility import EligibilitySource
from app.schema.plans import FitnessPlan
from app.schema.sql import SystemSetting, TrainerClient

logger = logging.getLogger(__name__)

GLOBALLY_DISABLED_KEY = "fitness_coach_globally_disabled"
FREQUENCY_DAYS_KEY = "plan_generation_frequency_days"


class PostgresEligibilitySource(EligibilitySource):
  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def has_assigned_trainer(self, user_id: uuid.UUID) -> bool:
    async with self._session_factory() as session:
      return bool((await session.execute(select(exists().where(TrainerClient.client_id == user_id)))).scalar())

  async def is_globally_disabled(self) -> bool:
    raw = await self._setting(GLOBALLY_DISABLED_KEY)
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}

  async def frequency_days(self, default: int) -> int:
    raw = await self._setting(FREQUENCY_DAYS_KEY)
    if raw is None:
      return default
    try:
      return max(int(raw.strip()), 0)
    except ValueError:
      logger.warning("Ignoring invalid system setting %s=%r", FREQUENCY_DAYS_KEY, raw)
      return default

  async def last_plan_created_at(self, user_id: uuid.UUID) -> datetime.datetime | None:
    async with self._session_factory() as session:
      return (await session.execute(select(func.max(FitnessPlan.created_at)).where(FitnessPlan.user_id == user_id))).scalar()

  async def _setting(self, key: str) -> str | None:
    async with self._session_factory() as session:
      return (await session.execute(select(SystemSetting.value).where(SystemSetting.key == key))).scalar_one_or_none()
