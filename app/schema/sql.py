from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class User(Base):
  __tablename__ = "users"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  full_name: Mapped[str | None] = mapped_column(String, nullable=True)
  is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  is_trainer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class TrainerClient(Base):
  """A trainer assignment; the client's plans are managed by the trainer."""

  __tablename__ = "trainer_clients"
  __table_args__ = (UniqueConstraint("trainer_id", "client_id", name="ux_trainer_clients_pair"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  trainer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SystemSetting(Base):
  __tablename__ = "system_settings"

  key: Mapped[str] = mapped_column(String, primary_key=True)
  value: Mapped[str] = mapped_column(Text, nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class NutritionGoal(Base):
  __tablename__ = "nutrition_goals"

  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
  calories: Mapped[int] = mapped_column(Integer, nullable=False)
  protein: Mapped[int] = mapped_column(Integer, nullable=False)
  carbs: Mapped[int] = mapped_column(Integer, nullable=False)
  fat: Mapped[int] = mapped_column(Integer, nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
