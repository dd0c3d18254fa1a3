from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class PlanGenerationStatus(Base):
  """Durable per-user generation record; the primary key allows one row per user."""

  __tablename__ = "plan_generation_status"

  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
  is_generating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  total_steps: Mapped[int] = mapped_column(Integer, nullable=False, default=5, server_default="5")
  step_message: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
  estimated_time_remaining_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  generation_token: Mapped[str] = mapped_column(String, nullable=False)
  claimed_step: Mapped[int | None] = mapped_column(Integer, nullable=True)
  claimed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  input_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  step_data_json: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
  started_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)


class FitnessPlan(Base):
  __tablename__ = "fitness_plans"
  __table_args__ = (Index("ux_fitness_plans_one_active_per_user", "user_id", unique=True, postgresql_where=text("is_active")),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  preferences: Mapped[dict] = mapped_column(JSONB, nullable=False)
  nutrition: Mapped[dict] = mapped_column(JSONB, nullable=False)
  workout_plan: Mapped[dict] = mapped_column(JSONB, nullable=False)
  meal_plan: Mapped[dict] = mapped_column(JSONB, nullable=False)
  assembly_warnings: Mapped[list] = mapped_column(JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb"))
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  deactivated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  deactivation_reason: Mapped[str | None] = mapped_column(String, nullable=True)
