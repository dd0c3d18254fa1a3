"""Email delivery through the MailerSend HTTP API."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass

from app.notifications.contracts import EmailNotification, EmailSender, NotificationProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailerSendConfig:
  api_key: str
  from_address: str
  from_name: str | None
  timeout_seconds: int
  base_url: str = "https://api.mailersend.com/v1"


class MailerSendEmailSender(EmailSender):
  """Blocking sender; callers run it in a worker thread."""

  def __init__(self, *, config: MailerSendConfig) -> None:
    self._config = config

  def _payload(self, notification: EmailNotification) -> dict[str, object]:
    sender: dict[str, str] = {"email": self._config.from_address}
    if self._config.from_name:
      sender["name"] = self._config.from_name
    recipient: dict[str, str] = {"email": notification.to_address}
    if notification.to_name:
      recipient["name"] = notification.to_name
    return {"from": sender, "to": [recipient], "subject": notification.subject, "text": notification.text, "html": notification.html}

  def send(self, notification: EmailNotification) -> str | None:
    request = urllib.request.Request(
      url=f"{self._config.base_url.rstrip('/')}/email",
      data=json.dumps(self._payload(notification)).encode("utf-8"),
      method="POST",
      headers={"Authorization": f"Bearer {self._config.api_key}", "Content-Type": "application/json", "Accept": "application/json"},
    )
    try:
      with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
        return response.headers.get("X-Message-Id")
    except urllib.error.HTTPError as exc:
      body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
      raise NotificationProviderError(f"MailerSend rejected the email (status={exc.code}): {body[:300]}") from exc
    except urllib.error.URLError as exc:
      raise NotificationProviderError(f"MailerSend is unreachable: {exc.reason}") from exc


class NullEmailSender(EmailSender):
  """Drops email when delivery is disabled."""

  def send(self, notification: EmailNotification) -> str | None:
    logger.debug("Email notifications disabled; dropping email subject=%s", notification.subject)
    return None
