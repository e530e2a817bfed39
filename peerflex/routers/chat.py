import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from peerflex.core.errors import AuthenticationError, PeerflexError
from peerflex.database.connection import mongo_db_dependency
from peerflex.routers.conversations import get_chat_service
from peerflex.schemas.chat import SendMessage
from peerflex.services.auth_service import AuthService
from peerflex.services.chat_service import ChatService
from peerflex.sync.conversations import ConversationSync
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import build_chat_service, change_feed_dependency


logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.get("/messages/{chat_room_id}")
async def list_messages(
    chat_room_id: str,
    page: int = Query(0, ge=0),
    page_size: int = Query(50, ge=1, le=200),
    service: ChatService = Depends(get_chat_service),
):
    return {"items": await service.get_messages(chat_room_id, page=page, page_size=page_size)}


@router.post("/messages/{chat_room_id}", status_code=status.HTTP_201_CREATED)
async def send_message(chat_room_id: str, body: SendMessage, service: ChatService = Depends(get_chat_service)):
    return await service.send_message(chat_room_id, body.content, message_type=body.message_type)


@router.post("/messages/{chat_room_id}/read")
async def mark_read(chat_room_id: str, service: ChatService = Depends(get_chat_service)):
    await service.mark_as_read(chat_room_id)
    return {"msg": "Marked as read"}


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, db = Depends(mongo_db_dependency), feed: ChangeFeed = Depends(change_feed_dependency)):
    # token travels as ?token=... since browsers cannot set WS headers
    try:
        session = AuthService.get_session(websocket.query_params.get("token"))
    except AuthenticationError:
        session = None
    if session is None:
        await websocket.close(code=4401)
        return

    await websocket.accept()
    send_lock = asyncio.Lock()

    async def send(payload: dict) -> None:
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        async with send_lock:
            await websocket.send_text(json.dumps(payload))

    async def push_state() -> None:
        await send({"type": "state", **sync.snapshot()})

    sync = ConversationSync(build_chat_service(db, feed, session), on_change=push_state)
    logger.info("Chat socket opened for %s", session.user_id)

    try:
        await sync.start()
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
                kind = msg.get("type")
                if kind == "select":
                    await sync.select_conversation(str(msg["conversation_id"]))
                elif kind == "send":
                    await sync.send_message(str(msg["room_id"]), str(msg["content"]))
                elif kind == "refresh":
                    await sync.refresh_conversations()
                else:
                    await send({"type": "error", "detail": f"Unknown message type: {kind}"})
            except KeyError as exc:
                await send({"type": "error", "detail": f"Missing field {exc.args[0]}"})
            except (ValueError, AttributeError):
                await send({"type": "error", "detail": "Invalid message payload"})
            except PeerflexError as exc:
                await send({"type": "error", "detail": exc.message})
    except WebSocketDisconnect:
        logger.info("Chat socket closed for %s", session.user_id)
    finally:
        await sync.close()
