from typing import Optional

from fastapi import APIRouter, Depends, status

from peerflex.database.connection import mongo_db_dependency
from peerflex.repositories.user_repository import ProfileRepository, UserRepository
from peerflex.schemas.profile import Profile
from peerflex.schemas.user import Session, Token, UserCreate, UserLogin, UserPublic
from peerflex.services.auth_service import AuthService
from peerflex.services.profile_service import ProfileService
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import change_feed_dependency, get_session


router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(db = Depends(mongo_db_dependency), feed: ChangeFeed = Depends(change_feed_dependency)) -> AuthService:
    return AuthService(UserRepository(db), ProfileRepository(db, feed))


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register(body: UserCreate, service: AuthService = Depends(get_auth_service)):
    return await service.sign_up(body)


@router.post("/login", response_model=Token)
async def login(body: UserLogin, service: AuthService = Depends(get_auth_service)):
    session = await service.sign_in(body.email, body.password)
    return Token(access_token=session.access_token)


@router.get("/me")
async def me(session: Session = Depends(get_session), db = Depends(mongo_db_dependency), feed: ChangeFeed = Depends(change_feed_dependency)):
    profile: Optional[Profile] = await ProfileService(ProfileRepository(db, feed), session).get_profile()
    return {"user_id": session.user_id, "email": session.email, "profile": profile}
