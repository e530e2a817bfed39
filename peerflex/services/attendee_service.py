import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from peerflex.core.errors import AlreadyRegisteredError, EventFullError, NotAuthorizedError, NotFoundError
from peerflex.repositories.event_repository import EventAttendeeRepository, EventRepository
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.event import EventAttendance
from peerflex.schemas.user import Session
from peerflex.services.base import ScopedService, attach_profiles, parse_push, parse_row
from peerflex.utils.change_feed import ANY, ChangeEvent, ChangeFeed, Subscription, maybe_await


logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ["registered", "attended"]


class AttendeeService(ScopedService):

    def __init__(
        self,
        attendee_repo: EventAttendeeRepository,
        event_repo: EventRepository,
        profile_repo: ProfileRepository,
        feed: ChangeFeed,
        session: Optional[Session],
    ) -> None:
        super().__init__(session)
        self._repo = attendee_repo
        self._event_repo = event_repo
        self._profile_repo = profile_repo
        self._feed = feed

    async def register_for_event(self, event_id: str) -> EventAttendance:
        user_id = self._require_user()
        event = await self._event_repo.get(event_id)
        if event is None:
            raise NotFoundError("Event not found")

        existing = await self._repo.get_for_user(event_id, user_id)
        if existing and existing.get("status") != "cancelled":
            raise AlreadyRegisteredError("Already registered for this event")

        max_attendees = event.get("max_attendees")
        if max_attendees:
            count = await self._repo.count_with_status(event_id, ACTIVE_STATUSES)
            if count >= max_attendees:
                raise EventFullError("Event is at full capacity")

        if existing:
            row = await self._repo.update_by_id(
                existing["id"],
                {"$set": {"status": "registered", "registered_at": datetime.now(timezone.utc), "joined_at": None}},
            )
        else:
            row = await self._repo.register(event_id, user_id)
        await self._event_repo.adjust_registered(event_id, 1)
        logger.info("User %s registered for event %s", user_id, event_id)
        return parse_row(EventAttendance, row)

    async def unregister_from_event(self, event_id: str) -> None:
        user_id = self._require_user()
        existing = await self._repo.get_for_user(event_id, user_id)
        if existing is None or existing.get("status") == "cancelled":
            return
        await self._repo.update_by_id(existing["id"], {"$set": {"status": "cancelled"}})
        await self._event_repo.adjust_registered(event_id, -1)

    async def get_event_attendees(self, event_id: str) -> List[EventAttendance]:
        rows = await self._repo.list_for_event(event_id)
        await attach_profiles(self._profile_repo, rows, key="user_id", target="profile")
        return [parse_row(EventAttendance, row) for row in rows]

    async def get_attendee_count(self, event_id: str) -> int:
        return await self._repo.count_with_status(event_id, ACTIVE_STATUSES)

    async def check_in(self, event_id: str, user_id: Optional[str] = None) -> EventAttendance:
        viewer_id = self._require_user()
        target_id = user_id or viewer_id
        if target_id != viewer_id:
            event = await self._event_repo.get(event_id)
            if event is None or event.get("created_by") != viewer_id:
                raise NotAuthorizedError("Only the organizer can check in other attendees")
        existing = await self._repo.get_for_user(event_id, target_id)
        if existing is None or existing.get("status") == "cancelled":
            raise NotFoundError("Not registered for this event")
        row = await self._repo.update_by_id(
            existing["id"], {"$set": {"status": "attended", "joined_at": datetime.now(timezone.utc)}}
        )
        return parse_row(EventAttendance, row)

    async def get_user_event_status(self, event_id: str) -> Optional[EventAttendance]:
        if self.viewer_id is None:
            return None
        row = await self._repo.get_for_user(event_id, self.viewer_id)
        return parse_row(EventAttendance, row) if row else None

    async def get_user_registrations(self) -> List[EventAttendance]:
        user_id = self._require_user()
        rows = await self._repo.list_for_user(user_id)
        events = await self._event_repo.get_many([row["event_id"] for row in rows])
        for row in rows:
            row["event"] = events.get(row["event_id"])
        return [parse_row(EventAttendance, row) for row in rows]

    async def subscribe_to_attendees(
        self, event_id: str, callback: Callable[[str, EventAttendance], Any]
    ) -> Subscription:
        async def _on_change(change: ChangeEvent) -> None:
            attendance = parse_push(EventAttendance, change.row)
            if attendance is not None:
                await maybe_await(callback(change.type, attendance))

        return await self._feed.subscribe("event_attendees", _on_change, event=ANY, filter={"event_id": event_id})
