from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from peerflex.core.errors import NotAuthenticatedError
from peerflex.repositories.connection_repository import ConnectionRequestRepository, UserConnectionRepository
from peerflex.repositories.conversation_repository import ChatMemberRepository, ChatRoomRepository
from peerflex.repositories.event_repository import EventAttendeeRepository, EventCategoryRepository, EventRepository
from peerflex.repositories.message_repository import MessageRepository
from peerflex.repositories.notification_repository import NotificationRepository
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.user import Session
from peerflex.services.attendee_service import AttendeeService
from peerflex.services.auth_service import AuthService
from peerflex.services.chat_service import ChatService
from peerflex.services.connection_service import ConnectionService
from peerflex.services.event_service import EventService
from peerflex.services.notification_service import NotificationService
from peerflex.store.preferences import PreferencesStore
from peerflex.utils.change_feed import ChangeFeed, get_feed


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_optional_session(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Session]:
    return AuthService.get_session(token)


async def get_session(session: Optional[Session] = Depends(get_optional_session)) -> Session:
    if session is None:
        raise NotAuthenticatedError("Not authenticated")
    return session


async def change_feed_dependency() -> ChangeFeed:
    return await get_feed()


def get_preferences_store(request: Request) -> PreferencesStore:
    return request.app.state.preferences


def build_notification_service(db: AsyncIOMotorDatabase, feed: ChangeFeed, session: Optional[Session]) -> NotificationService:
    return NotificationService(NotificationRepository(db, feed), ProfileRepository(db, feed), feed, session)


def build_chat_service(db: AsyncIOMotorDatabase, feed: ChangeFeed, session: Optional[Session]) -> ChatService:
    return ChatService(
        ChatRoomRepository(db, feed),
        ChatMemberRepository(db, feed),
        MessageRepository(db, feed),
        ProfileRepository(db, feed),
        feed,
        session,
    )


def build_connection_service(db: AsyncIOMotorDatabase, feed: ChangeFeed, session: Optional[Session]) -> ConnectionService:
    return ConnectionService(
        ConnectionRequestRepository(db, feed),
        UserConnectionRepository(db, feed),
        ProfileRepository(db, feed),
        build_notification_service(db, feed, session),
        session,
    )


def build_attendee_service(db: AsyncIOMotorDatabase, feed: ChangeFeed, session: Optional[Session]) -> AttendeeService:
    return AttendeeService(
        EventAttendeeRepository(db, feed),
        EventRepository(db, feed),
        ProfileRepository(db, feed),
        feed,
        session,
    )


def build_event_service(db: AsyncIOMotorDatabase, feed: ChangeFeed, session: Optional[Session]) -> EventService:
    return EventService(
        EventRepository(db, feed),
        EventCategoryRepository(db, feed),
        ProfileRepository(db, feed),
        build_attendee_service(db, feed, session),
        build_notification_service(db, feed, session),
        feed,
        session,
    )
