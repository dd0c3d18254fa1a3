"""Rate-limit retries and lenient JSON decoding used by the model providers."""

from __future__ import annotations

import json

import pytest

from app.ai.backoff import is_rate_limit_error, retry_with_backoff
from app.ai.json_parser import parse_json_with_fallback


def test_parse_json_with_surrounding_prose_and_trailing_commas() -> None:
  raw = 'Here is the plan: {"weeklySchedule": {"monday": {"name": "Legs",},},} Enjoy!'
  assert parse_json_with_fallback(raw) == {"weeklySchedule": {"monday": {"name": "Legs"}}}


def test_parse_json_ignores_braces_inside_strings() -> None:
  assert parse_json_with_fallback('note {"name": "a } b"} end') == {"name": "a } b"}


def test_parse_json_without_payload_raises() -> None:
  with pytest.raises(json.JSONDecodeError):
    parse_json_with_fallback("no json here")


def test_rate_limit_detection() -> None:
  assert is_rate_limit_error(RuntimeError("429 Too Many Requests"))
  assert not is_rate_limit_error(RuntimeError("400 Bad Request"))


@pytest.mark.anyio
async def test_retry_only_rate_limits() -> None:
  attempts = []

  async def _flaky() -> str:
    attempts.append(1)
    if len(attempts) < 3:
      raise RuntimeError("Resource Exhausted")
    return "ok"

  assert await retry_with_backoff(_flaky, delays=(0, 0, 0)) == "ok"
  assert len(attempts) == 3

  async def _broken() -> str:
    raise ValueError("invalid schema")

  with pytest.raises(ValueError):
    await retry_with_backoff(_broken, delays=(0, 0))
