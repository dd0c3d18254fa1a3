"""Resolve the generative model used by plan steps."""

from __future__ import annotations

from collections.abc import Callable

from app.ai.providers.base import AIModel, Provider
from app.ai.providers.gemini import GeminiProvider
from app.ai.providers.openrouter import OpenRouterProvider
from app.config import Settings

_GEMINI_PROVIDER = "gemini"
_OPENROUTER_PROVIDER = "openrouter"


def get_provider(settings: Settings) -> Provider:
  if settings.plan_provider == _OPENROUTER_PROVIDER:
    return OpenRouterProvider(api_key=settings.openrouter_api_key)
  if settings.plan_provider == _GEMINI_PROVIDER:
    return GeminiProvider(api_key=settings.gemini_api_key)
  raise ValueError(f"Unsupported plan provider '{settings.plan_provider}'.")


def build_model_factory(settings: Settings) -> Callable[[], AIModel]:
  """Defer client construction to the step so a missing key degrades to the fallback plan."""

  def _factory() -> AIModel:
    return get_provider(settings).get_model(settings.plan_model)

  return _factory
