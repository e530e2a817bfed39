from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from peerflex.models.notification import NotificationDocument
from peerflex.repositories.base import Repository


class NotificationRepository(Repository):

    table = "notifications"

    async def create(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "system",
        from_user_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        doc: NotificationDocument = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "type": type,
            "from_user_id": from_user_id,
            "data": data or {},
            "is_read": False,
            "created_at": datetime.now(timezone.utc),
        }
        return await self.insert(doc)

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return await self.find({"user_id": user_id}, sort=[("created_at", DESCENDING), ("_id", DESCENDING)], limit=limit)

    async def count_unread(self, user_id: str) -> int:
        return await self.count({"user_id": user_id, "is_read": False})
