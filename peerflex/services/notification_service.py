import logging
from typing import Any, Callable, Dict, List, Optional

from peerflex.core.errors import NotFoundError
from peerflex.repositories.base import to_object_id
from peerflex.repositories.notification_repository import NotificationRepository
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.notification import Notification
from peerflex.schemas.user import Session
from peerflex.services.base import ScopedService, attach_profiles, parse_push, parse_row
from peerflex.utils.change_feed import INSERT, ChangeEvent, ChangeFeed, Subscription, maybe_await


logger = logging.getLogger(__name__)


class NotificationService(ScopedService):

    def __init__(
        self,
        notification_repo: NotificationRepository,
        profile_repo: ProfileRepository,
        feed: ChangeFeed,
        session: Optional[Session],
    ) -> None:
        super().__init__(session)
        self._repo = notification_repo
        self._profile_repo = profile_repo
        self._feed = feed

    async def get_user_notifications(self, limit: int = 50) -> List[Notification]:
        user_id = self._require_user()
        rows = await self._repo.list_for_user(user_id, limit=limit)
        await attach_profiles(self._profile_repo, rows, key="from_user_id", target="from_user")
        return [parse_row(Notification, row) for row in rows]

    async def get_unread_count(self) -> int:
        user_id = self._require_user()
        return await self._repo.count_unread(user_id)

    async def mark_as_read(self, notification_id: str) -> None:
        user_id = self._require_user()
        oid = to_object_id(notification_id)
        updated = await self._repo.update({"_id": oid, "user_id": user_id}, {"$set": {"is_read": True}}) if oid else []
        if not updated:
            raise NotFoundError("Notification not found")

    async def mark_all_as_read(self) -> int:
        user_id = self._require_user()
        updated = await self._repo.update({"user_id": user_id, "is_read": False}, {"$set": {"is_read": True}})
        return len(updated)

    async def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "system",
        from_user_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        row = await self._repo.create(user_id, title, message, type=type, from_user_id=from_user_id, data=data)
        await attach_profiles(self._profile_repo, [row], key="from_user_id", target="from_user")
        logger.debug("Notification %s (%s) created for %s", row["id"], type, user_id)
        return parse_row(Notification, row)

    async def delete_notification(self, notification_id: str) -> None:
        user_id = self._require_user()
        oid = to_object_id(notification_id)
        removed = await self._repo.delete({"_id": oid, "user_id": user_id}) if oid else []
        if not removed:
            raise NotFoundError("Notification not found")

    async def subscribe_to_notifications(self, callback: Callable[[Notification], Any]) -> Subscription:
        user_id = self._require_user()

        async def _on_insert(change: ChangeEvent) -> None:
            notification = parse_push(Notification, change.new)
            if notification is not None:
                await maybe_await(callback(notification))

        return await self._feed.subscribe("notifications", _on_insert, event=INSERT, filter={"user_id": user_id})
