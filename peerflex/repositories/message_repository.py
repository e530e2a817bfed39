from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from peerflex.models.chat import MessageDocument
from peerflex.repositories.base import Repository


class MessageRepository(Repository):

    table = "messages"

    async def save_message(
        self,
        chat_room_id: str,
        user_id: str,
        content: str,
        message_type: str = "text",
        file_url: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        doc: MessageDocument = {
            "chat_room_id": chat_room_id,
            "user_id": user_id,
            "content": content,
            "message_type": message_type,
            "file_url": file_url,
            "reply_to": reply_to,
            "read_by": [user_id],
            "created_at": datetime.now(timezone.utc),
        }
        return await self.insert(doc)

    async def get_page(self, chat_room_id: str, page: int = 0, page_size: int = 50) -> List[Dict[str, Any]]:
        """Newest page first; callers reverse for chronological display."""
        return await self.find(
            {"chat_room_id": chat_room_id},
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
            skip=page * page_size,
            limit=page_size,
        )

    async def last_message(self, chat_room_id: str) -> Optional[Dict[str, Any]]:
        items = await self.get_page(chat_room_id, page=0, page_size=1)
        return items[0] if items else None

    def _unread_query(self, chat_room_id: str, user_id: str) -> Dict[str, Any]:
        return {"chat_room_id": chat_room_id, "user_id": {"$ne": user_id}, "read_by": {"$nin": [user_id]}}

    async def count_unread(self, chat_room_id: str, user_id: str) -> int:
        return await self.count(self._unread_query(chat_room_id, user_id))

    async def mark_read(self, chat_room_id: str, user_id: str) -> int:
        updated = await self.update(self._unread_query(chat_room_id, user_id), {"$addToSet": {"read_by": user_id}})
        return len(updated)
