import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from peerflex.core.errors import RemoteServiceError
from peerflex.models.user import ProfileDocument, UserDocument
from peerflex.repositories.base import Repository, to_object_id


class UserRepository(Repository):
    """Credentials. Never published on the change feed."""

    table = "users"

    async def create_user(self, email: str, hashed_password: str) -> str:
        doc: UserDocument = {
            "email": email,
            "hashed_password": hashed_password,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = await self.collection.insert_one(doc)
        except PyMongoError as exc:
            raise RemoteServiceError("Failed to create user") from exc
        return str(result.inserted_id)

    async def get_user_by_email(self, email: str) -> Optional[dict]:
        return await self.find_one({"email": email})


class ProfileRepository(Repository):

    table = "profiles"

    async def create_profile(self, user_id: str, full_name: str, username: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc: ProfileDocument = {
            "_id": to_object_id(user_id),
            "username": username or full_name.lower().replace(" ", ""),
            "full_name": full_name,
            "skills": [],
            "interests": [],
            "is_online": False,
            "reputation_score": 0,
            "created_at": now,
            "updated_at": now,
        }
        return await self.insert(doc)

    async def search(self, text: str, limit: int = 20) -> List[Dict[str, Any]]:
        pattern = re.compile(re.escape(text), re.IGNORECASE)
        return await self.find(
            {"$or": [{"full_name": pattern}, {"username": pattern}]},
            sort=[("full_name", ASCENDING)],
            limit=limit,
        )
