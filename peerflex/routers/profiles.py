from typing import Optional

from fastapi import APIRouter, Depends, Query

from peerflex.core.errors import NotFoundError
from peerflex.database.connection import mongo_db_dependency
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.profile import ProfileUpdate
from peerflex.schemas.user import Session
from peerflex.services.profile_service import ProfileService
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import change_feed_dependency, get_optional_session


router = APIRouter(prefix="/profiles", tags=["profiles"])


def get_profile_service(
    db = Depends(mongo_db_dependency),
    feed: ChangeFeed = Depends(change_feed_dependency),
    session: Optional[Session] = Depends(get_optional_session),
) -> ProfileService:
    return ProfileService(ProfileRepository(db, feed), session)


@router.get("/me")
async def my_profile(service: ProfileService = Depends(get_profile_service)):
    profile = await service.get_profile()
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


@router.patch("/me")
async def update_my_profile(body: ProfileUpdate, service: ProfileService = Depends(get_profile_service)):
    return await service.update_profile(body)


@router.get("/search")
async def search_profiles(q: str = "", limit: int = Query(20, ge=1, le=100), service: ProfileService = Depends(get_profile_service)):
    return {"items": await service.search_profiles(q, limit=limit)}


@router.get("/{user_id}")
async def get_profile(user_id: str, service: ProfileService = Depends(get_profile_service)):
    return await service.get_profile_by_id(user_id)
