from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from peerflex.database.connection import mongo_db_dependency
from peerflex.schemas.connection import ConnectionRequestCreate
from peerflex.schemas.user import Session
from peerflex.services.connection_service import ConnectionService
from peerflex.sync.connections import ConnectionStatusTracker
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import build_connection_service, change_feed_dependency, get_session


router = APIRouter(prefix="/connections", tags=["connections"])


def get_connection_service(
    db = Depends(mongo_db_dependency),
    feed: ChangeFeed = Depends(change_feed_dependency),
    session: Session = Depends(get_session),
) -> ConnectionService:
    return build_connection_service(db, feed, session)


@router.get("")
async def connection_list(service: ConnectionService = Depends(get_connection_service)):
    return {"connections": await service.get_connections()}


@router.delete("/{connected_user_id}")
async def remove_connection(connected_user_id: str, service: ConnectionService = Depends(get_connection_service)):
    await service.remove_connection(connected_user_id)
    return {"msg": "Connection removed"}


@router.get("/status/{other_user_id}")
async def connection_status(other_user_id: str, service: ConnectionService = Depends(get_connection_service)):
    status_ = await service.get_connection_status(other_user_id)
    return {**status_.model_dump(), "state": status_.state.value}


_TRANSITIONS = {
    "request": ConnectionStatusTracker.send_request,
    "accept": ConnectionStatusTracker.accept_request,
    "reject": ConnectionStatusTracker.reject_request,
    "withdraw": ConnectionStatusTracker.withdraw_request,
    "remove": ConnectionStatusTracker.remove_connection,
}


@router.post("/status/{other_user_id}/{action}")
async def connection_transition(
    other_user_id: str,
    action: str,
    message: Optional[str] = Body(None, embed=True),
    service: ConnectionService = Depends(get_connection_service),
):
    """Move the connection with one user through request, accept, reject, withdraw or remove."""
    transition = _TRANSITIONS.get(action)
    if transition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown action: {action}")
    tracker = ConnectionStatusTracker(service, other_user_id)
    await tracker.refresh()
    args = (message,) if action == "request" else ()
    status_ = await transition(tracker, *args)
    return {**status_.model_dump(), "state": status_.state.value}


@router.get("/requests")
async def received_requests(service: ConnectionService = Depends(get_connection_service)):
    return {"requests": await service.get_pending_requests()}


@router.post("/requests", status_code=status.HTTP_201_CREATED)
async def send_request(body: ConnectionRequestCreate, service: ConnectionService = Depends(get_connection_service)):
    return await service.send_request(body.to_user_id, body.message)


@router.post("/requests/{request_id}/accept")
async def accept_request(request_id: str, service: ConnectionService = Depends(get_connection_service)):
    await service.accept_request(request_id)
    return {"msg": "Connection added"}


@router.post("/requests/{request_id}/reject")
async def reject_request(request_id: str, service: ConnectionService = Depends(get_connection_service)):
    await service.reject_request(request_id)
    return {"msg": "Request rejected"}


@router.delete("/requests/{request_id}")
async def withdraw_request(request_id: str, service: ConnectionService = Depends(get_connection_service)):
    await service.withdraw_request(request_id)
    return {"msg": "Request withdrawn"}
