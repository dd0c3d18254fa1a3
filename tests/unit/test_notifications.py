"""Plan-ready notifications: templates, email delivery and in-app records."""

from __future__ import annotations

import urllib.error
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from app.generation.models import PlanRecord, PlanUser, utc_now
from app.notifications.contracts import EmailNotification, NotificationProviderError
from app.notifications.email_sender import MailerSendConfig, MailerSendEmailSender
from app.notifications.service import NotificationService
from app.notifications.templates import PLAN_READY_TEMPLATE_ID, render_email, render_notification


@pytest.fixture
def mock_email_sender():
  sender = MagicMock()
  sender.send.return_value = "msg-1"
  return sender


@pytest.fixture
def mock_in_app_repo():
  repo = MagicMock()
  repo.insert = AsyncMock()
  return repo


@pytest.fixture
def notification_service(mock_email_sender, mock_in_app_repo):
  return NotificationService(email_sender=mock_email_sender, in_app_repo=mock_in_app_repo, email_enabled=True)


@pytest.fixture
def member():
  return PlanUser(id=uuid.uuid4(), email="member@example.com", full_name="Sam <b>Member</b>")


@pytest.fixture
def plan(member):
  schedule = {"monday": {"workoutType": "strength"}, "tuesday": {"workoutType": "rest"}, "wednesday": {"workoutType": "cardio"}}
  return PlanRecord(id=uuid.uuid4(), user_id=member.id, preferences={}, nutrition={"calories": 2044}, workout_plan={"weeklySchedule": schedule}, meal_plan={}, is_active=True, created_at=utc_now())


@pytest.mark.anyio
async def test_plan_ready_creates_in_app_notification_and_email(notification_service, mock_email_sender, mock_in_app_repo, member, plan):
  await notification_service.notify_plan_generated(user=member, plan=plan, notify_by_email=True)

  mock_in_app_repo.insert.assert_awaited_once()
  notification = mock_in_app_repo.insert.await_args.kwargs["notification"]
  assert notification.template_id == PLAN_READY_TEMPLATE_ID
  assert "2044 kcal" in notification.body
  assert "2 training day(s)" in notification.body

  mock_email_sender.send.assert_called_once()
  email = mock_email_sender.send.call_args[0][0]
  assert email.to_address == "member@example.com"
  assert "&lt;b&gt;" in email.html


@pytest.mark.anyio
async def test_email_skipped_unless_requested(notification_service, mock_email_sender, mock_in_app_repo, member, plan):
  await notification_service.notify_plan_generated(user=member, plan=plan, notify_by_email=False)
  mock_in_app_repo.insert.assert_awaited_once()
  mock_email_sender.send.assert_not_called()


@pytest.mark.anyio
async def test_email_skipped_when_channel_disabled(mock_email_sender, mock_in_app_repo, member, plan):
  service = NotificationService(email_sender=mock_email_sender, in_app_repo=mock_in_app_repo, email_enabled=False)
  await service.notify_plan_generated(user=member, plan=plan, notify_by_email=True)
  mock_email_sender.send.assert_not_called()


@pytest.mark.anyio
async def test_provider_error_is_logged_not_raised(notification_service, mock_email_sender, member, plan, caplog):
  mock_email_sender.send.side_effect = NotificationProviderError("MailerSend rejected the email (status=403)")
  await notification_service.notify_plan_generated(user=member, plan=plan, notify_by_email=True)
  assert "provider error" in caplog.text


@pytest.mark.anyio
async def test_in_app_failure_still_sends_email(notification_service, mock_email_sender, mock_in_app_repo, member, plan):
  mock_in_app_repo.insert.side_effect = RuntimeError("db down")
  await notification_service.notify_plan_generated(user=member, plan=plan, notify_by_email=True)
  mock_email_sender.send.assert_called_once()


@pytest.mark.anyio
async def test_dispatch_runs_in_background(notification_service, mock_in_app_repo, member, plan):
  notification_service.dispatch_plan_ready(user=member, plan=plan, notify_by_email=False)
  await notification_service.wait_for_pending()
  mock_in_app_repo.insert.assert_awaited_once()


def test_render_notification_requires_all_placeholders():
  with pytest.raises(ValueError, match="plan_id"):
    render_notification(template_id=PLAN_READY_TEMPLATE_ID, data={"greeting": "Hi,", "calories": 1, "workout_days": 3})


def test_render_email_rejects_unknown_template():
  with pytest.raises(ValueError):
    render_email(template_id="missing", data={}, to_address="a@example.com", to_name=None)


def test_mailer_send_email_sender_raises_provider_error():
  config = MailerSendConfig(api_key="key", from_address="from@ex.com", from_name="From", timeout_seconds=5)
  sender = MailerSendEmailSender(config=config)

  notification = EmailNotification(to_address="to@ex.com", to_name="To", subject="Sub", text="Text", html="HTML")

  with patch("urllib.request.urlopen") as mock_urlopen:
    mock_urlopen.side_effect = urllib.error.HTTPError("url", 403, "Forbidden", {}, None)

    with pytest.raises(NotificationProviderError) as excinfo:
      sender.send(notification)

    assert "status=403" in str(excinfo.value)
