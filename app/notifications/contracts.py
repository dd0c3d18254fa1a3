"""Contracts for plan notification delivery channels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class EmailNotification:
  to_address: str
  to_name: str | None
  subject: str
  text: str
  html: str


@dataclass(frozen=True)
class RenderedNotification:
  """Title/body pair shared by the in-app and email channels."""

  template_id: str
  title: str
  body: str
  data: dict[str, str]


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class NotificationProviderError(NotificationError):
  """The email provider rejected or failed a delivery."""


class EmailSender(Protocol):
  """Delivery contract for sending email notifications."""

  def send(self, notification: EmailNotification) -> str | None:
    """Send synchronously and return the provider message id, if any."""
