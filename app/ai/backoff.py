"""Retry logic for provider rate limits."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Short delays; the caller's step timeout bounds the whole attempt anyway.
DEFAULT_DELAYS: tuple[float, ...] = (0.5, 1.5, 3.0)


def is_rate_limit_error(error: BaseException) -> bool:
  message = str(error)
  return "429" in message or "Too Many Requests" in message or "Resource Exhausted" in message or "Quota Exceeded" in message


async def retry_with_backoff(func: Callable[..., Awaitable[T]], *args: Any, delays: Sequence[float] = DEFAULT_DELAYS, **kwargs: Any) -> T:
  """Execute ``func`` retrying only 429/quota errors with jittered delays."""
  for attempt, delay in enumerate(delays):
    try:
      return await func(*args, **kwargs)
    except Exception as e:
      if not is_rate_limit_error(e):
        raise
      logger.warning("Rate limited attempt=%s/%s error=%s; retrying in %.1fs", attempt + 1, len(delays), e, delay)
      await asyncio.sleep(delay + random.uniform(0, 0.25))

  # Final attempt
  return await func(*args, **kwargs)
