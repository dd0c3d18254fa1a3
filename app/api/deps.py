"""Shared FastAPI dependencies for plan generation routes."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from app.config import Settings, get_settings
from app.generation.assembler import ResultAssembler
from app.generation.orchestrator import OrchestratorPolicy, PlanGenerationOrchestrator
from app.generation.steps import StepExecutor
from app.notifications.factory import build_notification_service
from app.notifications.service import NotificationService
from app.services.model_routing import build_model_factory
from app.storage.postgres_eligibility_source import PostgresEligibilitySource
from app.storage.postgres_generation_repo import PostgresGenerationRepository, PostgresPlansRepository


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
  """Process-wide so pending deliveries stay referenced across requests."""
  return build_notification_service(get_settings())


def get_plan_generation_service(settings: Settings = Depends(get_settings)) -> PlanGenerationOrchestrator:  # noqa: B008
  """Build the orchestrator over the Postgres repositories."""
  plans_repo = PostgresPlansRepository()
  return PlanGenerationOrchestrator(
    repo=PostgresGenerationRepository(),
    plans_repo=plans_repo,
    eligibility_source=PostgresEligibilitySource(),
    executor=StepExecutor(model_factory=build_model_factory(settings), timeout_seconds=settings.step_timeout_seconds, fallback_enabled=settings.step_fallback_enabled),
    assembler=ResultAssembler(plans_repo=plans_repo, notifier=get_notification_service()),
    policy=OrchestratorPolicy.from_settings(settings),
  )
