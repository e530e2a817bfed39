from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from peerflex.models.chat import ChatMemberDocument, ChatRoomDocument
from peerflex.repositories.base import Repository


class ChatRoomRepository(Repository):

    table = "chat_rooms"

    async def create_room(
        self,
        created_by: str,
        is_group: bool,
        name: Optional[str] = None,
        description: Optional[str] = None,
        subject: Optional[str] = None,
        is_public: bool = False,
    ) -> Dict[str, Any]:
        doc: ChatRoomDocument = {
            "name": name,
            "description": description,
            "is_group": is_group,
            "is_public": is_public,
            "subject": subject,
            "created_by": created_by,
            "created_at": datetime.now(timezone.utc),
        }
        return await self.insert(doc)


class ChatMemberRepository(Repository):

    table = "chat_members"

    async def add_member(self, chat_room_id: str, user_id: str, role: str = "member") -> Dict[str, Any]:
        doc: ChatMemberDocument = {
            "chat_room_id": chat_room_id,
            "user_id": user_id,
            "role": role,
            "joined_at": datetime.now(timezone.utc),
        }
        return await self.insert(doc)

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.find({"user_id": user_id}, sort=[("joined_at", DESCENDING), ("_id", DESCENDING)])

    async def list_for_rooms(self, room_ids: List[str]) -> List[Dict[str, Any]]:
        if not room_ids:
            return []
        return await self.find({"chat_room_id": {"$in": room_ids}})
