"""Error taxonomy for plan generation."""

from __future__ import annotations

from typing import Any


class PlanGenerationError(Exception):
  """Base class for errors surfaced to plan generation callers."""

  status_code = 400
  code = "plan_generation_error"

  def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.details = details or {}


class IneligibleError(PlanGenerationError):
  status_code = 403
  code = "ineligible"


class AlreadyGeneratingError(PlanGenerationError):
  status_code = 409
  code = "already_generating"


class NotGeneratingError(PlanGenerationError):
  status_code = 409
  code = "not_generating"


class NotCompleteError(PlanGenerationError):
  status_code = 409
  code = "not_complete"


class PlanNotFoundError(PlanGenerationError):
  status_code = 404
  code = "plan_not_found"


class StepExecutionError(PlanGenerationError):
  """A step's unit of work failed; recorded on the record rather than raised to callers."""

  status_code = 500
  code = "step_failed"


class StaleRecordError(PlanGenerationError):
  """A generating record stopped advancing and was expired by the watchdog."""

  status_code = 409
  code = "stale_record"


class AssemblyError(PlanGenerationError):
  """Step outputs could not be assembled even with default substitution."""

  status_code = 500
  code = "assembly_failed"
