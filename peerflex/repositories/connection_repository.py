from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from peerflex.models.connection import ConnectionRequestDocument, UserConnectionDocument
from peerflex.repositories.base import Repository


class ConnectionRequestRepository(Repository):

    table = "connection_requests"

    async def create_request(self, from_user_id: str, to_user_id: str, message: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc: ConnectionRequestDocument = {
            "from_user_id": from_user_id,
            "to_user_id": to_user_id,
            "message": message,
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        return await self.insert(doc)

    async def get_pending(self, from_user_id: str, to_user_id: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"from_user_id": from_user_id, "to_user_id": to_user_id, "status": "pending"})

    async def update_status(self, request_id: str, status: str) -> Optional[Dict[str, Any]]:
        return await self.update_by_id(
            request_id, {"$set": {"status": status, "updated_at": datetime.now(timezone.utc)}}
        )

    async def list_received(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.find(
            {"to_user_id": user_id, "status": "pending"}, sort=[("created_at", DESCENDING), ("_id", DESCENDING)]
        )


class UserConnectionRepository(Repository):

    table = "user_connections"

    async def connect(self, user_id: str, other_user_id: str) -> List[Dict[str, Any]]:
        """Create the accepted rows for both directions, skipping ones that exist."""
        now = datetime.now(timezone.utc)
        rows = []
        for owner, other in ((user_id, other_user_id), (other_user_id, user_id)):
            existing = await self.find_one({"user_id": owner, "connected_user_id": other})
            if existing:
                if existing.get("status") != "accepted":
                    existing = await self.update_by_id(
                        existing["id"], {"$set": {"status": "accepted", "connected_at": now}}
                    )
                rows.append(existing)
                continue
            doc: UserConnectionDocument = {
                "user_id": owner,
                "connected_user_id": other,
                "status": "accepted",
                "created_at": now,
                "connected_at": now,
            }
            rows.append(await self.insert(doc))
        return rows

    async def get_accepted(self, user_id: str, other_user_id: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"user_id": user_id, "connected_user_id": other_user_id, "status": "accepted"})

    async def list_accepted(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.find(
            {"user_id": user_id, "status": "accepted"}, sort=[("connected_at", DESCENDING), ("_id", DESCENDING)]
        )

    async def disconnect(self, user_id: str, other_user_id: str) -> int:
        removed = await self.delete(
            {
                "$or": [
                    {"user_id": user_id, "connected_user_id": other_user_id},
                    {"user_id": other_user_id, "connected_user_id": user_id},
                ]
            }
        )
        return len(removed)
