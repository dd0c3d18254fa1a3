"""Eligibility gate deciding whether a user may start a new plan generation."""

from __future__ import annotations

import datetime
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Protocol

from app.generation.models import PlanUser, utc_now

logger = logging.getLogger(__name__)

MANAGED_PLAN_MESSAGE = "Your fitness plan is managed by your trainer"
GLOBALLY_DISABLED_MESSAGE = "Plan generation is currently disabled"


@dataclass(frozen=True)
class EligibilityFacts:
  """Inputs the gate reads from external collaborators."""

  has_trainer: bool
  globally_disabled: bool
  frequency_days: int
  last_plan_created_at: datetime.datetime | None


@dataclass(frozen=True)
class EligibilityDecision:
  can_create: bool
  has_managed_plan: bool = False
  globally_disabled: bool = False
  days_remaining: int | None = None
  message: str | None = None


class EligibilitySource(Protocol):
  """Read-only access to the facts the gate depends on."""

  async def has_assigned_trainer(self, user_id: uuid.UUID) -> bool:
    """Return True when another party manages the user's plans."""

  async def is_globally_disabled(self) -> bool:
    """Return True when plan generation is switched off for ordinary users."""

  async def frequency_days(self, default: int) -> int:
    """Return the minimum number of days between generated plans."""

  async def last_plan_created_at(self, user_id: uuid.UUID) -> datetime.datetime | None:
    """Return when the user's most recent plan was created."""


def evaluate_eligibility(user: PlanUser, facts: EligibilityFacts, *, now: datetime.datetime | None = None) -> EligibilityDecision:
  """Apply the gate rules in priority order: managed plan, global switch, interval."""
  if facts.has_trainer and not user.is_privileged:
    return EligibilityDecision(can_create=False, has_managed_plan=True, message=MANAGED_PLAN_MESSAGE)

  if facts.globally_disabled and not user.is_privileged:
    return EligibilityDecision(can_create=False, globally_disabled=True, message=GLOBALLY_DISABLED_MESSAGE)

  # Admins and trainers are not rate limited.
  if user.is_privileged or facts.last_plan_created_at is None or facts.frequency_days <= 0:
    return EligibilityDecision(can_create=True, globally_disabled=facts.globally_disabled)

  current = now or utc_now()
  elapsed_days = (current - facts.last_plan_created_at).total_seconds() / 86400
  days_since = math.floor(max(elapsed_days, 0))
  if days_since >= facts.frequency_days:
    return EligibilityDecision(can_create=True)

  return EligibilityDecision(can_create=False, days_remaining=facts.frequency_days - days_since, message=f"You can only generate a new fitness plan every {facts.frequency_days} days")


async def check_eligibility(source: EligibilitySource, user: PlanUser, *, default_frequency_days: int, now: datetime.datetime | None = None) -> EligibilityDecision:
  """Gather facts and evaluate the gate; performs no writes."""
  # Managed users never reach the interval check, so skip its queries.
  has_trainer = await source.has_assigned_trainer(user.id)
  if has_trainer and not user.is_privileged:
    facts = EligibilityFacts(has_trainer=True, globally_disabled=False, frequency_days=default_frequency_days, last_plan_created_at=None)
    return evaluate_eligibility(user, facts, now=now)

  facts = EligibilityFacts(
    has_trainer=has_trainer,
    globally_disabled=await source.is_globally_disabled(),
    frequency_days=await source.frequency_days(default_frequency_days),
    last_plan_created_at=await source.last_plan_created_at(user.id),
  )
  decision = evaluate_eligibility(user, facts, now=now)
  logger.debug("Eligibility evaluated user_id=%s can_create=%s days_remaining=%s", user.id, decision.can_create, decision.days_remaining)
  return decision
