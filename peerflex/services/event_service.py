import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from peerflex.core.errors import NotAuthorizedError, NotFoundError
from peerflex.models.event import EventDocument, GeoPoint
from peerflex.repositories.event_repository import EventCategoryRepository, EventRepository
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.event import (
    Event,
    EventAttendance,
    EventCategory,
    EventCreate,
    EventFilters,
    EventUpdate,
)
from peerflex.schemas.location import Location
from peerflex.schemas.user import Session
from peerflex.services.attendee_service import AttendeeService
from peerflex.services.base import ScopedService, attach_profiles, parse_push, parse_row
from peerflex.services.location_service import haversine_km
from peerflex.services.notification_service import NotificationService
from peerflex.utils.change_feed import DELETE, ChangeEvent, ChangeFeed, Subscription, maybe_await


logger = logging.getLogger(__name__)

EventCallback = Callable[[str, str, Optional[Event]], Any]


def _to_point(location: Optional[Location]) -> Optional[GeoPoint]:
    if location is None:
        return None
    return {"type": "Point", "coordinates": [location.longitude, location.latitude]}


class EventService(ScopedService):

    def __init__(
        self,
        event_repo: EventRepository,
        category_repo: EventCategoryRepository,
        profile_repo: ProfileRepository,
        attendees: AttendeeService,
        notifications: NotificationService,
        feed: ChangeFeed,
        session: Optional[Session],
    ) -> None:
        super().__init__(session)
        self._repo = event_repo
        self._category_repo = category_repo
        self._profile_repo = profile_repo
        self._attendees = attendees
        self._notifications = notifications
        self._feed = feed

    async def _to_events(self, rows: List[Dict[str, Any]]) -> List[Event]:
        await attach_profiles(self._profile_repo, rows, key="created_by", target="user")
        return [parse_row(Event, row) for row in rows]

    async def get_events(self, filters: Optional[EventFilters] = None) -> List[Event]:
        filters = filters or EventFilters()
        event_type = filters.event_type if filters.event_type and filters.event_type != "all" else None

        if filters.near_location is not None:
            near = filters.near_location
            nearby = []
            for row in await self._repo.with_location(event_type):
                lng, lat = row["location"]["coordinates"][:2]
                if haversine_km(near.lat, near.lng, lat, lng) <= near.radius:
                    nearby.append(row["id"])
            if not nearby:
                return []
            return await self._to_events(await self._repo.search(ids=nearby))

        skip, limit = 0, 0
        if filters.limit:
            skip, limit = filters.page * filters.limit, filters.limit
        rows = await self._repo.search(
            event_type=event_type,
            text=filters.search,
            starts_after=datetime.now(timezone.utc) if filters.upcoming_only else None,
            skip=skip,
            limit=limit,
        )
        return await self._to_events(rows)

    async def get_event_by_id(self, event_id: str) -> Optional[Event]:
        row = await self._repo.get(event_id)
        if row is None:
            return None
        return (await self._to_events([row]))[0]

    async def create_event(self, data: EventCreate) -> Event:
        user_id = self._require_user()
        doc: EventDocument = data.model_dump()
        doc.update(
            location=_to_point(data.location),
            created_by=user_id,
            max_attendees=data.max_attendees or 50,
            difficulty_level=data.difficulty_level or "beginner",
            price=data.price or 0,
            registered_count=0,
            created_at=datetime.now(timezone.utc),
        )
        row = await self._repo.insert(doc)
        event = (await self._to_events([row]))[0]
        logger.info("Event %s created by %s", event.id, user_id)

        try:
            await self._notifications.create_notification(
                user_id=user_id,
                title="Event Created Successfully",
                message=f'Your event "{event.title}" has been created successfully.',
                type="system",
                data={"event_id": event.id},
            )
        except Exception:
            logger.exception("Failed to create notification for event %s", event.id)
        return event

    async def update_event(self, event_id: str, updates: Union[EventUpdate, Dict[str, Any]]) -> Event:
        user_id = self._require_user()
        existing = await self._repo.get(event_id)
        if existing is None or existing.get("created_by") != user_id:
            raise NotAuthorizedError("Not authorized to update this event")
        if isinstance(updates, dict):
            updates = EventUpdate.model_validate(updates)
        changes = updates.model_dump(exclude_unset=True)
        if "location" in changes:
            changes["location"] = _to_point(updates.location)
        if not changes:
            return (await self._to_events([existing]))[0]
        row = await self._repo.update_by_id(event_id, {"$set": changes})
        if row is None:
            raise NotFoundError("Event not found")
        return (await self._to_events([row]))[0]

    async def register_for_event(self, event_id: str) -> EventAttendance:
        return await self._attendees.register_for_event(event_id)

    async def cancel_registration(self, event_id: str) -> None:
        await self._attendees.unregister_from_event(event_id)

    async def get_user_registrations(self) -> List[EventAttendance]:
        return await self._attendees.get_user_registrations()

    async def get_event_categories(self) -> List[EventCategory]:
        rows = await self._category_repo.list_active()
        return [parse_row(EventCategory, row) for row in rows]

    async def subscribe_to_events(self, callback: EventCallback) -> Subscription:
        """callback(change_type, event_id, event); event is None for deletes."""

        async def _on_change(change: ChangeEvent) -> None:
            if change.type == DELETE:
                await maybe_await(callback(DELETE, change.old.get("id", ""), None))
                return
            event = parse_push(Event, change.new)
            if event is not None:
                await maybe_await(callback(change.type, event.id, event))

        return await self._feed.subscribe("events", _on_change)
