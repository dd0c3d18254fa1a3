"""Plan-ready notifications delivered in-app and, on request, by email."""

from __future__ import annotations

import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from app.generation.models import PlanRecord, PlanUser
from app.notifications.contracts import EmailSender, NotificationProviderError
from app.notifications.in_app_repo import InAppNotificationRepository
from app.notifications.templates import PLAN_READY_TEMPLATE_ID, render_email, render_notification

logger = logging.getLogger(__name__)


class NotificationService:
  """Dispatches plan notifications; delivery failures are logged, never raised to the caller."""

  def __init__(self, *, email_sender: EmailSender, in_app_repo: InAppNotificationRepository, email_enabled: bool) -> None:
    self._email_sender = email_sender
    self._in_app_repo = in_app_repo
    self._email_enabled = email_enabled
    self._tasks: set[asyncio.Task[None]] = set()

  def dispatch_plan_ready(self, *, user: PlanUser, plan: PlanRecord, notify_by_email: bool) -> None:
    """Schedule delivery on the running loop and return immediately."""
    task = asyncio.create_task(self.notify_plan_generated(user=user, plan=plan, notify_by_email=notify_by_email))
    # The loop only keeps weak references to tasks.
    self._tasks.add(task)
    task.add_done_callback(self._tasks.discard)
    task.add_done_callback(self._log_task_error)

  async def wait_for_pending(self) -> None:
    if self._tasks:
      await asyncio.gather(*list(self._tasks), return_exceptions=True)

  async def notify_plan_generated(self, *, user: PlanUser, plan: PlanRecord, notify_by_email: bool) -> None:
    schedule = plan.workout_plan.get("weeklySchedule") or {}
    data = {
      "greeting": f"Hi {user.full_name}," if user.full_name else "Hi,",
      "calories": plan.nutrition.get("calories", ""),
      "workout_days": sum(1 for day in schedule.values() if isinstance(day, dict) and day.get("workoutType") != "rest"),
      "plan_id": str(plan.id),
    }

    try:
      await self._in_app_repo.insert(user_id=user.id, notification=render_notification(template_id=PLAN_READY_TEMPLATE_ID, data=data))
    except Exception as exc:  # noqa: BLE001
      logger.error("In-app plan notification failed user_id=%s: %s", user.id, exc, exc_info=True)

    if not (self._email_enabled and notify_by_email and user.email):
      return
    try:
      email = render_email(template_id=PLAN_READY_TEMPLATE_ID, data=data, to_address=user.email, to_name=user.full_name)
      message_id = await run_in_threadpool(self._email_sender.send, email)
      logger.info("Plan-ready email sent user_id=%s message_id=%s", user.id, message_id)
    except NotificationProviderError as exc:
      logger.error("Plan-ready email delivery failed (provider error): %s", exc)
    except Exception as exc:  # noqa: BLE001
      logger.error("Plan-ready email delivery failed: %s", exc, exc_info=True)

  @staticmethod
  def _log_task_error(task: asyncio.Task[None]) -> None:
    if task.cancelled():
      return
    exc = task.exception()
    if exc is not None:
      logger.error("Background notification task failed: %s", exc, exc_info=exc)
