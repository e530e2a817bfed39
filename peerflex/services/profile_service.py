import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from peerflex.core.errors import NotFoundError
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.profile import Profile, ProfileUpdate
from peerflex.schemas.user import Session
from peerflex.services.base import ScopedService, parse_row


logger = logging.getLogger(__name__)


class ProfileService(ScopedService):

    def __init__(self, profile_repo: ProfileRepository, session: Optional[Session]) -> None:
        super().__init__(session)
        self._repo = profile_repo

    async def get_profile(self) -> Optional[Profile]:
        if self.viewer_id is None:
            return None
        row = await self._repo.get(self.viewer_id)
        if row is None:
            logger.warning("No profile row for signed-in user %s", self.viewer_id)
            return None
        return parse_row(Profile, row)

    async def get_profile_by_id(self, user_id: str) -> Profile:
        row = await self._repo.get(user_id)
        if row is None:
            raise NotFoundError("Profile not found")
        return parse_row(Profile, row)

    async def update_profile(self, updates: Union[ProfileUpdate, Dict[str, Any]]) -> Profile:
        user_id = self._require_user()
        if isinstance(updates, dict):
            updates = ProfileUpdate.model_validate(updates)
        changes = updates.model_dump(exclude_unset=True)
        changes["updated_at"] = datetime.now(timezone.utc)
        row = await self._repo.update_by_id(user_id, {"$set": changes})
        if row is None:
            raise NotFoundError("Profile not found")
        return parse_row(Profile, row)

    async def search_profiles(self, query: str, limit: int = 20) -> List[Profile]:
        if not query or not query.strip():
            return []
        rows = await self._repo.search(query.strip(), limit=limit)
        return [parse_row(Profile, row) for row in rows]
