import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING

from peerflex.models.event import EventAttendeeDocument, EventCategoryDocument
from peerflex.repositories.base import Repository, to_object_id


class EventRepository(Repository):

    table = "events"

    async def search(
        self,
        event_type: Optional[str] = None,
        text: Optional[str] = None,
        starts_after: Optional[datetime] = None,
        ids: Optional[List[str]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"is_public": True}
        if event_type:
            query["event_type"] = event_type
        if text:
            pattern = re.compile(re.escape(text), re.IGNORECASE)
            query["$or"] = [{"title": pattern}, {"description": pattern}, {"tags": text}]
        if starts_after is not None:
            query["start_time"] = {"$gte": starts_after}
        if ids is not None:
            query["_id"] = {"$in": [oid for oid in (to_object_id(i) for i in ids) if oid is not None]}
        return await self.find(query, sort=[("start_time", ASCENDING), ("_id", ASCENDING)], skip=skip, limit=limit)

    async def with_location(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"is_public": True, "location": {"$ne": None}}
        if event_type:
            query["event_type"] = event_type
        return await self.find(query)

    async def adjust_registered(self, event_id: str, delta: int) -> Optional[Dict[str, Any]]:
        return await self.update_by_id(event_id, {"$inc": {"registered_count": delta}})


class EventAttendeeRepository(Repository):

    table = "event_attendees"

    async def register(self, event_id: str, user_id: str) -> Dict[str, Any]:
        doc: EventAttendeeDocument = {
            "event_id": event_id,
            "user_id": user_id,
            "status": "registered",
            "registered_at": datetime.now(timezone.utc),
            "joined_at": None,
        }
        return await self.insert(doc)

    async def get_for_user(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"event_id": event_id, "user_id": user_id})

    async def list_for_event(self, event_id: str) -> List[Dict[str, Any]]:
        return await self.find({"event_id": event_id}, sort=[("registered_at", DESCENDING), ("_id", DESCENDING)])

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.find({"user_id": user_id}, sort=[("registered_at", DESCENDING), ("_id", DESCENDING)])

    async def count_with_status(self, event_id: str, statuses: List[str]) -> int:
        return await self.count({"event_id": event_id, "status": {"$in": statuses}})


class EventCategoryRepository(Repository):

    table = "event_categories"

    async def list_active(self) -> List[Dict[str, Any]]:
        return await self.find({"is_active": True}, sort=[("name", ASCENDING)])

    async def create_category(self, name: str, description: Optional[str] = None, is_active: bool = True) -> Dict[str, Any]:
        doc: EventCategoryDocument = {"name": name, "description": description, "is_active": is_active}
        return await self.insert(doc)
