"""Staleness handling for generation records on both sides of the wire."""

from __future__ import annotations

import datetime
import logging
import uuid

import msgspec

from app.generation.models import GenerationRecord, GenerationStatus, utc_now
from app.storage.generation_repo import GenerationRepository

logger = logging.getLogger(__name__)

TIMED_OUT_MESSAGE = "timed out"


class StaleRecordWatchdog:
  """Fail generating records that stopped advancing."""

  def __init__(self, repo: GenerationRepository, *, stale_after_seconds: int) -> None:
    self._repo = repo
    self._stale_after = datetime.timedelta(seconds=stale_after_seconds)

  def is_stale(self, record: GenerationRecord, *, now: datetime.datetime) -> bool:
    return record.is_generating and record.updated_at < now - self._stale_after

  async def expire_if_stale(self, record: GenerationRecord | None, *, now: datetime.datetime | None = None) -> GenerationRecord | None:
    """Return the record as it should be observed after the watchdog ran."""
    now = now or utc_now()
    if record is None or not self.is_stale(record, now=now):
      return record

    expired = await self._repo.expire_stale(updated_before=now - self._stale_after, error_message=TIMED_OUT_MESSAGE, now=now, user_id=record.user_id)
    if expired:
      logger.warning("Generation for user %s expired after %ss without progress", record.user_id, int(self._stale_after.total_seconds()))
    return await self._repo.get(record.user_id)

  async def sweep(self, *, now: datetime.datetime | None = None) -> list[uuid.UUID]:
    now = now or utc_now()
    expired = await self._repo.expire_stale(updated_before=now - self._stale_after, error_message=TIMED_OUT_MESSAGE, now=now)
    if expired:
      logger.info("Stale sweep expired %d generation record(s)", len(expired))
    return expired


class ClientGenerationCache(msgspec.Struct, rename="camel", omit_defaults=True):
  """What a client remembers locally about its own generation run."""

  is_generating: bool = False
  started_at: datetime.datetime | None = None
  last_continued_step: int | None = None


def reconcile_client_cache(local: ClientGenerationCache | None, status: GenerationStatus, *, now: datetime.datetime, stale_after_seconds: int) -> ClientGenerationCache:
  """Merge server progress into the local cache.

  A run whose start is older than the stale threshold is dropped
  unconditionally, whether the start was remembered locally or adopted from
  the server; otherwise the server's generating flag wins.
  """
  local = local or ClientGenerationCache()
  if not status.is_generating:
    return ClientGenerationCache(is_generating=False, started_at=None, last_continued_step=None)

  started_at = local.started_at or status.started_at or now
  if now - started_at > datetime.timedelta(seconds=stale_after_seconds):
    return ClientGenerationCache()
  return ClientGenerationCache(is_generating=True, started_at=started_at, last_continued_step=local.last_continued_step)
