import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from peerflex.core.errors import AuthenticationError, PeerflexError
from peerflex.database.connection import mongo_db_dependency
from peerflex.schemas.user import Session
from peerflex.services.auth_service import AuthService
from peerflex.sync.base import ViewState
from peerflex.sync.connections import ConnectionsView
from peerflex.sync.events import EventListView
from peerflex.sync.notifications import NotificationFeed
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import (
    build_connection_service,
    build_event_service,
    build_notification_service,
    change_feed_dependency,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


async def _authenticate(websocket: WebSocket) -> Optional[Session]:
    try:
        session = AuthService.get_session(websocket.query_params.get("token"))
    except AuthenticationError:
        session = None
    if session is None:
        await websocket.close(code=4401)
    return session


async def _serve(
    websocket: WebSocket,
    view: ViewState,
    handlers: Dict[str, Handler],
    start: Callable[[], Awaitable[Any]],
    close: Optional[Callable[[], Awaitable[Any]]] = None,
) -> None:
    """Accept the socket, push a snapshot after every change and dispatch incoming actions."""
    await websocket.accept()
    send_lock = asyncio.Lock()

    async def send(payload: dict) -> None:
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        async with send_lock:
            await websocket.send_text(json.dumps(payload))

    async def push_state() -> None:
        await send({"type": "state", **view.snapshot()})

    view.on_change = push_state

    try:
        await start()
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
                kind = msg.get("type")
                handler = handlers.get(kind)
                if handler is None:
                    await send({"type": "error", "detail": f"Unknown message type: {kind}"})
                    continue
                await handler(msg)
            except KeyError as exc:
                await send({"type": "error", "detail": f"Missing field {exc.args[0]}"})
            except (ValueError, AttributeError):
                await send({"type": "error", "detail": "Invalid message payload"})
            except PeerflexError as exc:
                await send({"type": "error", "detail": exc.message})
    except WebSocketDisconnect:
        logger.info("%s socket closed", type(view).__name__)
    finally:
        if close is not None:
            await close()


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, db = Depends(mongo_db_dependency), feed: ChangeFeed = Depends(change_feed_dependency)):
    session = await _authenticate(websocket)
    if session is None:
        return

    view = NotificationFeed(build_notification_service(db, feed, session))
    logger.info("Notification socket opened for %s", session.user_id)
    handlers = {
        "read": lambda msg: view.mark_as_read(str(msg["notification_id"])),
        "read_all": lambda msg: view.mark_all_as_read(),
        "delete": lambda msg: view.delete(str(msg["notification_id"])),
        "refresh": lambda msg: view.load(),
    }
    await _serve(websocket, view, handlers, start=view.start, close=view.close)


@router.websocket("/ws/events")
async def events_socket(websocket: WebSocket, db = Depends(mongo_db_dependency), feed: ChangeFeed = Depends(change_feed_dependency)):
    session = await _authenticate(websocket)
    if session is None:
        return

    view = EventListView(build_event_service(db, feed, session))
    logger.info("Event socket opened for %s", session.user_id)
    handlers = {
        "register": lambda msg: view.register(str(msg["event_id"])),
        "cancel": lambda msg: view.cancel(str(msg["event_id"])),
        "refresh": lambda msg: view.fetch(),
    }
    await _serve(websocket, view, handlers, start=view.start, close=view.close)


@router.websocket("/ws/connections")
async def connections_socket(websocket: WebSocket, db = Depends(mongo_db_dependency), feed: ChangeFeed = Depends(change_feed_dependency)):
    session = await _authenticate(websocket)
    if session is None:
        return

    view = ConnectionsView(build_connection_service(db, feed, session))
    logger.info("Connections socket opened for %s", session.user_id)
    handlers = {
        "send": lambda msg: view.send_request(str(msg["to_user_id"]), msg.get("message")),
        "accept": lambda msg: view.accept_request(str(msg["request_id"])),
        "reject": lambda msg: view.reject_request(str(msg["request_id"])),
        "remove": lambda msg: view.remove_connection(str(msg["connected_user_id"])),
        "refresh": lambda msg: view.load(),
    }
    await _serve(websocket, view, handlers, start=view.load)
