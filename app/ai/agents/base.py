"""Shared agent plumbing for generative plan steps."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from app.ai.providers.base import AIModel

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT", bound=BaseModel)

logger = logging.getLogger(__name__)

_SCHEMA_ONLY_FIELDS = ("kind", "source")


class BaseAgent(ABC, Generic[InputT, OutputT]):
  """Render a prompt, call the model for JSON, validate into ``output_model``."""

  name: str
  output_model: type[OutputT]

  def __init__(self, *, model: AIModel) -> None:
    self._model = model

  @staticmethod
  def _env_agent_key(name: str) -> str:
    """Convert an agent name like WorkoutPlanner to WORKOUT_PLANNER."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).upper()

  @abstractmethod
  def render_prompt(self, input_data: InputT) -> str:
    """Build the prompt text for ``input_data``."""

  def response_schema(self) -> dict[str, Any]:
    """JSON schema sent to the model, without fields the service fills in itself."""
    schema = self.output_model.model_json_schema(by_alias=True, mode="validation")
    properties = schema.get("properties", {})
    for field_name in _SCHEMA_ONLY_FIELDS:
      properties.pop(field_name, None)
    return schema

  async def run(self, input_data: InputT) -> OutputT:
    prompt_text = self.render_prompt(input_data)
    response = await self._model.generate_structured(prompt_text, self.response_schema(), dummy_key=self._env_agent_key(self.name))
    if response.usage:
      logger.info("Agent %s usage model=%s total_tokens=%s", self.name, self._model.name, response.usage.get("total_tokens"))

    try:
      return self.output_model.model_validate({**response.content, "source": "model"})
    except ValidationError as exc:
      logger.error("%s agent returned invalid JSON: %s", self.name, exc)
      raise RuntimeError(f"{self.name} agent returned invalid JSON: {exc}") from exc
