"""OpenRouter provider implementation using the openai SDK."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Final, cast

from openai import AsyncOpenAI

from app.ai.backoff import retry_with_backoff
from app.ai.json_parser import parse_json_with_fallback
from app.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse, StructuredModelResponse

logger = logging.getLogger(__name__)


def _usage(response: Any) -> dict[str, int] | None:
  if not response.usage:
    return None
  return {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}


class OpenRouterModel(AIModel):
  """OpenRouter model client using the OpenAI-compatible chat API."""

  def __init__(self, name: str, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = name
    self.supports_structured_output = True

    api_key = api_key or os.getenv("OPENROUTER_API_KEY")
    if not api_key:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")

    # Optional attribution headers.
    default_headers = {}
    referer = os.getenv("OPENROUTER_HTTP_REFERER")
    if referer:
      default_headers["HTTP-Referer"] = referer
    title = os.getenv("OPENROUTER_TITLE")
    if title:
      default_headers["X-Title"] = title

    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or "https://openrouter.ai/api/v1", default_headers=default_headers or None, max_retries=0)

  async def generate(self, prompt: str) -> ModelResponse:
    """Generate text response from OpenRouter."""
    response = await retry_with_backoff(self._client.chat.completions.create, model=self.name, messages=[{"role": "user", "content": prompt}])
    content = response.choices[0].message.content or ""
    logger.debug("OpenRouter response model=%s chars=%s", self.name, len(content))
    return SimpleModelResponse(content=content, usage=_usage(response))

  async def generate_structured(self, prompt: str, schema: dict[str, Any], *, dummy_key: str | None = None) -> StructuredModelResponse:
    """Generate structured JSON output using a json_schema response format."""
    # Allow deterministic local runs without spending credits.
    dummy = AIModel.load_dummy_response(dummy_key)
    if dummy is not None:
      logger.info("OpenRouter dummy structured response used for %s", dummy_key)
      return StructuredModelResponse(content=cast(dict[str, Any], parse_json_with_fallback(self.strip_json_fences(dummy))), usage=None)

    system_msg = "You are a certified fitness coach and nutritionist. Output valid JSON only, no markdown formatting."
    response = await retry_with_backoff(
      self._client.chat.completions.create,
      model=self.name,
      messages=[{"role": "system", "content": system_msg}, {"role": "user", "content": prompt}],
      response_format={"type": "json_schema", "json_schema": {"name": "plan_step", "schema": schema}},
    )
    content = response.choices[0].message.content or "{}"
    logger.debug("OpenRouter structured response model=%s chars=%s", self.name, len(content))

    try:
      parsed = parse_json_with_fallback(self.strip_json_fences(content))
    except json.JSONDecodeError as e:
      raise RuntimeError(f"OpenRouter returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
      raise RuntimeError("OpenRouter returned a JSON payload that is not an object.")
    return StructuredModelResponse(content=parsed, usage=_usage(response))


class OpenRouterProvider(Provider):
  """OpenRouter provider."""

  _DEFAULT_MODEL: Final[str] = "openai/gpt-4o-mini"
  _AVAILABLE_MODELS: Final[set[str]] = {"openai/gpt-4o-mini", "openai/gpt-4o", "openai/gpt-oss-120b", "meta-llama/llama-3.3-70b-instruct", "google/gemma-3-27b-it"}

  def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url

  def get_model(self, model: str | None = None) -> AIModel:
    """Return an OpenRouter model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported OpenRouter model '{model_name}'.")
    return OpenRouterModel(model_name, api_key=self._api_key, base_url=self._base_url)
