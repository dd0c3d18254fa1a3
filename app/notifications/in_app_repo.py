"""Repository helpers for in-app notifications."""

from __future__ import annotations

import logging
import uuid

from app.core.database import get_session_factory
from app.notifications.contracts import RenderedNotification
from app.schema.notifications import InAppNotification

logger = logging.getLogger(__name__)


class InAppNotificationRepository:
  """Persist in-app notifications to Postgres."""

  async def insert(self, *, user_id: uuid.UUID, notification: RenderedNotification) -> None:
    session_factory = get_session_factory()
    if session_factory is None:
      return
    async with session_factory() as session:
      session.add(InAppNotification(user_id=user_id, template_id=notification.template_id, title=notification.title, body=notification.body, data_json=notification.data, read=False))
      await session.commit()


class NullInAppNotificationRepository(InAppNotificationRepository):
  """No-op repository when persistence is unavailable."""

  async def insert(self, *, user_id: uuid.UUID, notification: RenderedNotification) -> None:
    logger.debug("In-app notification persistence disabled; dropping template_id=%s", notification.template_id)
