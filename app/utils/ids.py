"""Identifier utilities."""

from __future__ import annotations

import secrets
import uuid


def generate_generation_token() -> str:
  """Return an unguessable token identifying one generation run."""
  return secrets.token_urlsafe(18)


def generate_plan_id() -> uuid.UUID:
  """Return a new plan identifier."""
  return uuid.uuid4()
