"""JSON responses encoded with msgspec."""

from __future__ import annotations

from typing import Any

import msgspec
from fastapi.responses import JSONResponse


class MsgspecJSONResponse(JSONResponse):
  """JSONResponse that also encodes datetimes, UUIDs and msgspec Structs."""

  def render(self, content: Any) -> bytes:
    return msgspec.json.encode(content)
