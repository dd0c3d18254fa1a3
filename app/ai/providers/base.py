"""Base interfaces for AI providers and models."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).resolve().parents[3]


class ModelResponse(Protocol):
  """Response contract for model outputs."""

  content: str
  usage: dict[str, int] | None


@dataclass
class SimpleModelResponse:
  """Minimal model response structure."""

  content: str
  usage: dict[str, int] | None = None


@dataclass
class StructuredModelResponse:
  """Structured model response structure."""

  content: dict[str, Any]
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for AI models."""

  name: str
  supports_structured_output: bool = False

  @abstractmethod
  async def generate(self, prompt: str) -> ModelResponse:
    """Generate a response for the given prompt."""

  async def generate_structured(self, prompt: str, schema: dict[str, Any], *, dummy_key: str | None = None) -> StructuredModelResponse:
    """Generate structured output that conforms to the provided JSON schema."""
    raise RuntimeError("Structured output is not supported by this model.")

  @staticmethod
  def strip_json_fences(raw: str) -> str:
    """Remove a surrounding ```json fence if the model added one."""
    text = raw.strip()
    if text.startswith("```"):
      text = text.split("\n", 1)[1] if "\n" in text else ""
      if text.rstrip().endswith("```"):
        text = text.rstrip()[:-3]
    return text.strip()

  @staticmethod
  def load_dummy_response(agent_key: str | None) -> str | None:
    """Return a canned response when FITCOACH_USE_DUMMY_<AGENT>_RESPONSE is enabled."""
    if not agent_key:
      return None
    flag = os.getenv(f"FITCOACH_USE_DUMMY_{agent_key}_RESPONSE", "")
    if flag.strip().lower() not in {"1", "true", "yes", "on"}:
      return None

    raw_path = os.getenv(f"FITCOACH_DUMMY_{agent_key}_RESPONSE_PATH")
    path = Path(raw_path) if raw_path else _REPO_ROOT / "fixtures" / f"dummy_{agent_key.lower()}_response.json"
    if not path.is_absolute():
      path = _REPO_ROOT / path
    if not path.is_file():
      logger.warning("Dummy response enabled for %s but %s does not exist", agent_key, path)
      return None
    return path.read_text(encoding="utf-8")


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""
