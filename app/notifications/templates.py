"""Plan notification templates with escaped ``{{placeholder}}`` substitution."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any

from app.notifications.contracts import EmailNotification, RenderedNotification

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")

PLAN_READY_TEMPLATE_ID = "plan_ready_v1"


@dataclass(frozen=True)
class NotificationTemplate:
  template_id: str
  title: str
  body: str
  html_body: str
  required_keys: frozenset[str]


TEMPLATES: dict[str, NotificationTemplate] = {
  PLAN_READY_TEMPLATE_ID: NotificationTemplate(
    template_id=PLAN_READY_TEMPLATE_ID,
    title="Your fitness plan is ready",
    body="{{greeting}} your new plan is ready: {{calories}} kcal per day with {{workout_days}} training day(s) per week.",
    html_body=(
      '<table role="presentation" width="100%" cellpadding="0" cellspacing="0"><tr><td style="font-family:Arial,sans-serif;font-size:15px;color:#222;">'
      "<p>{{greeting}}</p><p>Your new fitness plan is ready.</p>"
      "<p>Daily target: <strong>{{calories}} kcal</strong>. Training days per week: <strong>{{workout_days}}</strong>.</p>"
      "</td></tr></table>"
    ),
    required_keys=frozenset({"greeting", "calories", "workout_days", "plan_id"}),
  ),
}


def _get_template(template_id: str) -> NotificationTemplate:
  template = TEMPLATES.get(template_id)
  if template is None:
    raise ValueError(f"Unknown notification template: {template_id}")
  return template


def _render(raw: str, data: dict[str, Any], *, escape_html: bool) -> str:
  def _replace(match: re.Match[str]) -> str:
    value = data.get(match.group(1))
    rendered = "" if value is None else str(value)
    return html.escape(rendered, quote=True) if escape_html else rendered

  return _PLACEHOLDER_RE.sub(_replace, raw)


def render_notification(*, template_id: str, data: dict[str, Any]) -> RenderedNotification:
  """Render the in-app title and body; raises ValueError on missing keys."""
  template = _get_template(template_id)
  missing = sorted(template.required_keys - set(data))
  if missing:
    raise ValueError(f"Missing placeholders for template '{template_id}': {', '.join(missing)}")
  return RenderedNotification(
    template_id=template_id,
    title=_render(template.title, data, escape_html=False),
    body=_render(template.body, data, escape_html=False),
    data={key: str(value) for key, value in data.items()},
  )


def render_email(*, template_id: str, data: dict[str, Any], to_address: str, to_name: str | None) -> EmailNotification:
  rendered = render_notification(template_id=template_id, data=data)
  html_body = _render(_get_template(template_id).html_body, data, escape_html=True)
  return EmailNotification(to_address=to_address, to_name=to_name, subject=rendered.title, text=rendered.body, html=html_body)
