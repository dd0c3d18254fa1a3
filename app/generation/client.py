"""HTTP client that drives a plan generation from the caller's side."""

from __future__ import annotations

import asyncio
import datetime
import logging

import httpx
import msgspec

from app.generation.models import GenerationStatus, StepId, utc_now
from app.generation.reconciler import ClientGenerationCache, reconcile_client_cache

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 4.0


class StatusPayload(msgspec.Struct, rename="camel"):
  is_generating: bool
  current_step: int
  total_steps: int
  step_message: str
  estimated_time_remaining_seconds: int
  error_message: str | None = None
  retry_count: int = 0
  started_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None

  def to_status(self) -> GenerationStatus:
    return GenerationStatus(
      is_generating=self.is_generating,
      current_step=StepId(self.current_step),
      total_steps=self.total_steps,
      step_message=self.step_message,
      estimated_time_remaining_seconds=self.estimated_time_remaining_seconds,
      error_message=self.error_message,
      retry_count=self.retry_count,
      started_at=self.started_at,
      updated_at=self.updated_at,
    )


class ContinuePayload(msgspec.Struct, rename="camel"):
  step: int
  message: str
  estimated_time_remaining: int
  is_generating: bool
  error_message: str | None = None


class StartPayload(msgspec.Struct):
  step: int
  message: str


class DriveOutcome(msgspec.Struct, frozen=True):
  """How a ``drive`` loop ended."""

  completed: bool
  abandoned: bool
  status: GenerationStatus
  continue_calls: int


class PlanGenerationClient:
  """Start, poll and continue a generation over the HTTP API.

  ``cache`` is the caller's local view. It is reconciled against the server on
  every poll and never treated as authoritative.
  """

  def __init__(self, http: httpx.AsyncClient, *, base_path: str = "/v1/plan-generation", stale_after_seconds: int = 600, cache: ClientGenerationCache | None = None) -> None:
    self._http = http
    self._base_path = base_path.rstrip("/")
    self._stale_after_seconds = stale_after_seconds
    self.cache = cache or ClientGenerationCache()

  async def start(self, preferences: dict) -> StartPayload:
    response = await self._http.post(f"{self._base_path}/start", json=preferences)
    response.raise_for_status()
    self.cache = ClientGenerationCache(is_generating=True, started_at=utc_now())
    return msgspec.json.decode(response.content, type=StartPayload)

  async def status(self) -> GenerationStatus:
    response = await self._http.get(f"{self._base_path}/status")
    response.raise_for_status()
    return msgspec.json.decode(response.content, type=StatusPayload).to_status()

  async def continue_(self) -> ContinuePayload:
    response = await self._http.post(f"{self._base_path}/continue")
    response.raise_for_status()
    return msgspec.json.decode(response.content, type=ContinuePayload)

  async def reset(self) -> None:
    response = await self._http.post(f"{self._base_path}/reset")
    response.raise_for_status()
    self.cache = ClientGenerationCache()

  async def drive(self, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS, max_polls: int = 200) -> DriveOutcome:
    """Poll status and keep issuing ``continue`` while the server reports a running generation.

    A ``continue`` that lands while another call holds the step only re-emits
    progress, so repeating it is safe.
    """
    calls = 0
    status = await self.status()
    for _ in range(max_polls):
      self.cache = reconcile_client_cache(self.cache, status, now=utc_now(), stale_after_seconds=self._stale_after_seconds)
      if not self.cache.is_generating:
        completed = status.current_step == StepId.COMPLETE and status.error_message is None
        # Server still generating but the local run aged out: abandon it.
        return DriveOutcome(completed=completed, abandoned=status.is_generating, status=status, continue_calls=calls)

      try:
        progress = await self.continue_()
      except httpx.HTTPStatusError as exc:
        if exc.response.status_code != 409:
          raise
        logger.info("Continue rejected with 409; re-reading status")
      else:
        calls += 1
        self.cache = msgspec.structs.replace(self.cache, last_continued_step=progress.step)
        if not progress.is_generating:
          status = await self.status()
          continue
        if progress.step != int(status.current_step):
          # Advanced; go straight on to the next step.
          status = await self.status()
          continue
      await asyncio.sleep(poll_interval)
      status = await self.status()

    logger.warning("Stopped driving generation after %d polls", max_polls)
    return DriveOutcome(completed=False, abandoned=False, status=status, continue_calls=calls)
