import logging
from typing import List, Optional

from peerflex.schemas.notification import Notification
from peerflex.services.notification_service import NotificationService
from peerflex.sync.base import OnChange, ViewState, error_text
from peerflex.utils.change_feed import Subscription


logger = logging.getLogger(__name__)


class NotificationFeed(ViewState):

    def __init__(self, service: NotificationService, on_change: Optional[OnChange] = None) -> None:
        super().__init__(on_change)
        self._service = service
        self.notifications: List[Notification] = []
        self.unread_count = 0
        self.loading = True
        self.error: Optional[str] = None
        self._listener: Optional[Subscription] = None

    async def start(self) -> None:
        try:
            self._listener = await self._service.subscribe_to_notifications(self._on_notification)
        except Exception:
            logger.exception("Failed to subscribe to notifications")
        await self.load()

    async def close(self) -> None:
        if self._listener is not None:
            await self._listener.unsubscribe()
            self._listener = None

    async def load(self) -> None:
        self.loading = True
        try:
            self.notifications = await self._service.get_user_notifications()
            self.unread_count = await self._service.get_unread_count()
            self.error = None
        except Exception as exc:
            logger.warning("Failed to load notifications: %s", exc)
            self.error = error_text(exc, "Failed to load notifications")
        finally:
            self.loading = False
        await self._changed()

    async def mark_as_read(self, notification_id: str) -> None:
        try:
            await self._service.mark_as_read(notification_id)
        except Exception as exc:
            self.error = error_text(exc, "Failed to mark as read")
        else:
            self.notifications = [
                n.model_copy(update={"is_read": True}) if n.id == notification_id else n for n in self.notifications
            ]
            self.unread_count = max(0, self.unread_count - 1)
        await self._changed()

    async def mark_all_as_read(self) -> None:
        try:
            await self._service.mark_all_as_read()
        except Exception as exc:
            self.error = error_text(exc, "Failed to mark all as read")
        else:
            self.notifications = [n.model_copy(update={"is_read": True}) for n in self.notifications]
            self.unread_count = 0
        await self._changed()

    async def delete(self, notification_id: str) -> None:
        existing = next((n for n in self.notifications if n.id == notification_id), None)
        try:
            await self._service.delete_notification(notification_id)
        except Exception as exc:
            self.error = error_text(exc, "Failed to delete notification")
        else:
            self.notifications = [n for n in self.notifications if n.id != notification_id]
            if existing is not None and not existing.is_read:
                self.unread_count = max(0, self.unread_count - 1)
        await self._changed()

    async def _on_notification(self, notification: Notification) -> None:
        self.notifications = [notification] + self.notifications
        if not notification.is_read:
            self.unread_count += 1
        await self._changed()

    def snapshot(self) -> dict:
        return {
            "notifications": [n.model_dump(mode="json") for n in self.notifications],
            "unread_count": self.unread_count,
            "loading": self.loading,
            "error": self.error,
        }
