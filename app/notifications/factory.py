"""Factory helpers for notification services."""

from __future__ import annotations

from app.config import Settings
from app.notifications.email_sender import MailerSendConfig, MailerSendEmailSender, NullEmailSender
from app.notifications.in_app_repo import InAppNotificationRepository, NullInAppNotificationRepository
from app.notifications.service import NotificationService


def build_notification_service(settings: Settings) -> NotificationService:
  """Construct a notification service based on environment configuration."""
  if settings.email_notifications_enabled:
    config = MailerSendConfig(
      api_key=settings.mailersend_api_key or "",
      from_address=settings.email_from_address or "",
      from_name=settings.email_from_name,
      timeout_seconds=settings.mailersend_timeout_seconds,
      base_url=settings.mailersend_base_url,
    )
    email_sender = MailerSendEmailSender(config=config)
  else:
    email_sender = NullEmailSender()

  # Persist in-app notifications only when Postgres is configured.
  in_app_repo = InAppNotificationRepository() if settings.pg_dsn else NullInAppNotificationRepository()
  return NotificationService(email_sender=email_sender, in_app_repo=in_app_repo, email_enabled=settings.email_notifications_enabled)
