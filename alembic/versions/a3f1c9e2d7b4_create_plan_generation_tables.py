"""Create users, plan generation and fitness plan tables.

Revision ID: a3f1c9e2d7b4
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from app.core.migration_guards import guarded_create_index, guarded_create_table, guarded_drop_index, guarded_drop_table

revision = "a3f1c9e2d7b4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  guarded_create_table(
    "users",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("firebase_uid", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("full_name", sa.String(), nullable=True),
    sa.Column("is_admin", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("is_trainer", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_users_firebase_uid"), "users", ["firebase_uid"], unique=True)
  guarded_create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

  guarded_create_table(
    "trainer_clients",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("trainer_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("client_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.ForeignKeyConstraint(["trainer_id"], ["users.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["client_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("trainer_id", "client_id", name="ux_trainer_clients_pair"),
  )
  guarded_create_index(op.f("ix_trainer_clients_trainer_id"), "trainer_clients", ["trainer_id"], unique=False)
  guarded_create_index(op.f("ix_trainer_clients_client_id"), "trainer_clients", ["client_id"], unique=False)

  guarded_create_table(
    "system_settings",
    sa.Column("key", sa.String(), nullable=False),
    sa.Column("value", sa.Text(), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.PrimaryKeyConstraint("key"),
  )

  guarded_create_table(
    "nutrition_goals",
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("calories", sa.Integer(), nullable=False),
    sa.Column("protein", sa.Integer(), nullable=False),
    sa.Column("carbs", sa.Integer(), nullable=False),
    sa.Column("fat", sa.Integer(), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("user_id"),
  )

  guarded_create_table(
    "plan_generation_status",
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("is_generating", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("current_step", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("total_steps", sa.Integer(), server_default=sa.text("5"), nullable=False),
    sa.Column("step_message", sa.Text(), server_default=sa.text("''"), nullable=False),
    sa.Column("estimated_time_remaining_seconds", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("retry_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("generation_token", sa.String(), nullable=False),
    sa.Column("claimed_step", sa.Integer(), nullable=True),
    sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("input_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("step_data_json", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("user_id"),
  )
  guarded_create_index(op.f("ix_plan_generation_status_updated_at"), "plan_generation_status", ["updated_at"], unique=False)

  guarded_create_table(
    "fitness_plans",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("preferences", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("nutrition", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("workout_plan", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("meal_plan", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("assembly_warnings", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
    sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("deactivation_reason", sa.String(), nullable=True),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_fitness_plans_user_id"), "fitness_plans", ["user_id"], unique=False)
  # At most one active plan per user.
  guarded_create_index("ux_fitness_plans_one_active_per_user", "fitness_plans", ["user_id"], unique=True, postgresql_where=sa.text("is_active"))

  guarded_create_table(
    "notifications",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("template_id", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("data_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)
  guarded_create_index(op.f("ix_notifications_template_id"), "notifications", ["template_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  guarded_drop_index(op.f("ix_notifications_template_id"), table_name="notifications")
  guarded_drop_index(op.f("ix_notifications_user_id"), table_name="notifications")
  guarded_drop_table("notifications")
  guarded_drop_index("ux_fitness_plans_one_active_per_user", table_name="fitness_plans")
  guarded_drop_index(op.f("ix_fitness_plans_user_id"), table_name="fitness_plans")
  guarded_drop_table("fitness_plans")
  guarded_drop_index(op.f("ix_plan_generation_status_updated_at"), table_name="plan_generation_status")
  guarded_drop_table("plan_generation_status")
  guarded_drop_table("nutrition_goals")
  guarded_drop_table("system_settings")
  guarded_drop_index(op.f("ix_trainer_clients_client_id"), table_name="trainer_clients")
  guarded_drop_index(op.f("ix_trainer_clients_trainer_id"), table_name="trainer_clients")
  guarded_drop_table("trainer_clients")
  guarded_drop_index(op.f("ix_users_email"), table_name="users")
  guarded_drop_index(op.f("ix_users_firebase_uid"), table_name="users")
  guarded_drop_table("users")
