"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Final, cast

from google import genai

from app.ai.backoff import retry_with_backoff
from app.ai.json_parser import parse_json_with_fallback
from app.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse, StructuredModelResponse

logger = logging.getLogger(__name__)


def _usage(response: Any) -> dict[str, int] | None:
  metadata = getattr(response, "usage_metadata", None)
  if not metadata:
    return None
  return {"prompt_tokens": metadata.prompt_token_count, "completion_tokens": metadata.candidates_token_count, "total_tokens": metadata.total_token_count}


class GeminiModel(AIModel):
  """Gemini model client with JSON-mode structured output."""

  def __init__(self, name: str, api_key: str | None = None) -> None:
    self.name: str = name
    self.supports_structured_output = True

    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def generate(self, prompt: str) -> ModelResponse:
    """Generate text response from Gemini."""
    # Use the async client to avoid blocking the asyncio event loop.
    response = await retry_with_backoff(self._client.aio.models.generate_content, model=self.name, contents=prompt)
    logger.debug("Gemini response model=%s chars=%s", self.name, len(response.text or ""))
    return SimpleModelResponse(content=response.text or "", usage=_usage(response))

  async def generate_structured(self, prompt: str, schema: dict[str, Any], *, dummy_key: str | None = None) -> StructuredModelResponse:
    """Generate structured JSON output using Gemini's JSON mode."""
    # Allow deterministic local runs without spending credits.
    dummy = AIModel.load_dummy_response(dummy_key)
    if dummy is not None:
      logger.info("Gemini dummy structured response used for %s", dummy_key)
      return StructuredModelResponse(content=cast(dict[str, Any], parse_json_with_fallback(self.strip_json_fences(dummy))), usage=None)

    response = await retry_with_backoff(self._client.aio.models.generate_content, model=self.name, contents=prompt, config={"response_mime_type": "application/json", "response_json_schema": schema})
    text = response.text or ""
    logger.debug("Gemini structured response model=%s chars=%s", self.name, len(text))

    try:
      parsed = parse_json_with_fallback(self.strip_json_fences(text))
    except json.JSONDecodeError as e:
      raise RuntimeError(f"Gemini returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
      raise RuntimeError("Gemini returned a JSON payload that is not an object.")
    return StructuredModelResponse(content=parsed, usage=_usage(response))


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.5-flash"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-2.0-flash"}

  def __init__(self, api_key: str | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")
    return GeminiModel(model_name, api_key=self._api_key)
