from fastapi import APIRouter, Depends, status

from peerflex.database.connection import mongo_db_dependency
from peerflex.schemas.chat import GroupRoomCreate
from peerflex.schemas.user import Session
from peerflex.services.chat_service import ChatService
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import build_chat_service, change_feed_dependency, get_session


router = APIRouter(prefix="/conversations", tags=["chat"])


def get_chat_service(
    db = Depends(mongo_db_dependency),
    feed: ChangeFeed = Depends(change_feed_dependency),
    session: Session = Depends(get_session),
) -> ChatService:
    return build_chat_service(db, feed, session)


@router.get("")
async def list_conversations(service: ChatService = Depends(get_chat_service)):
    return {"items": await service.get_conversations()}


@router.post("/direct/{other_user_id}")
async def open_direct_room(other_user_id: str, service: ChatService = Depends(get_chat_service)):
    return await service.get_or_create_private_room(other_user_id)


@router.post("/group", status_code=status.HTTP_201_CREATED)
async def create_group_room(body: GroupRoomCreate, service: ChatService = Depends(get_chat_service)):
    return await service.create_group_room(body.name, body.member_ids, description=body.description, subject=body.subject)
