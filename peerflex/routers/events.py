from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from peerflex.core.errors import NotFoundError
from peerflex.database.connection import mongo_db_dependency
from peerflex.schemas.event import EventCreate, EventFilters, EventUpdate, NearLocation
from peerflex.schemas.user import Session
from peerflex.services.attendee_service import AttendeeService
from peerflex.services.event_service import EventService
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import (
    build_attendee_service,
    build_event_service,
    change_feed_dependency,
    get_optional_session,
    get_session,
)


router = APIRouter(prefix="/events", tags=["events"])


def get_event_service(
    db = Depends(mongo_db_dependency),
    feed: ChangeFeed = Depends(change_feed_dependency),
    session: Optional[Session] = Depends(get_optional_session),
) -> EventService:
    return build_event_service(db, feed, session)


def get_attendee_service(
    db = Depends(mongo_db_dependency),
    feed: ChangeFeed = Depends(change_feed_dependency),
    session: Session = Depends(get_session),
) -> AttendeeService:
    return build_attendee_service(db, feed, session)


@router.get("")
async def list_events(
    event_type: Optional[str] = None,
    search: Optional[str] = None,
    upcoming_only: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=200),
    page: int = Query(0, ge=0),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(10, gt=0),
    service: EventService = Depends(get_event_service),
):
    near = NearLocation(lat=lat, lng=lng, radius=radius) if lat is not None and lng is not None else None
    filters = EventFilters(
        event_type=event_type, search=search, upcoming_only=upcoming_only, limit=limit, page=page, near_location=near
    )
    return {"items": await service.get_events(filters)}


@router.get("/categories")
async def list_categories(service: EventService = Depends(get_event_service)):
    return {"items": await service.get_event_categories()}


@router.get("/registrations")
async def my_registrations(service: AttendeeService = Depends(get_attendee_service)):
    return {"items": await service.get_user_registrations()}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(body: EventCreate, service: EventService = Depends(get_event_service)):
    return await service.create_event(body)


@router.get("/{event_id}")
async def get_event(event_id: str, service: EventService = Depends(get_event_service)):
    event = await service.get_event_by_id(event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


@router.patch("/{event_id}")
async def update_event(event_id: str, body: EventUpdate, service: EventService = Depends(get_event_service)):
    return await service.update_event(event_id, body)


@router.post("/{event_id}/register", status_code=status.HTTP_201_CREATED)
async def register(event_id: str, service: AttendeeService = Depends(get_attendee_service)):
    return await service.register_for_event(event_id)


@router.delete("/{event_id}/register")
async def cancel_registration(event_id: str, service: AttendeeService = Depends(get_attendee_service)):
    await service.unregister_from_event(event_id)
    return {"msg": "Registration cancelled"}


@router.get("/{event_id}/status")
async def my_status(event_id: str, service: AttendeeService = Depends(get_attendee_service)):
    return {"attendance": await service.get_user_event_status(event_id)}


@router.get("/{event_id}/attendees")
async def list_attendees(event_id: str, service: AttendeeService = Depends(get_attendee_service)):
    return {
        "items": await service.get_event_attendees(event_id),
        "count": await service.get_attendee_count(event_id),
    }


@router.post("/{event_id}/check_in")
async def check_in(event_id: str, user_id: Optional[str] = None, service: AttendeeService = Depends(get_attendee_service)):
    return await service.check_in(event_id, user_id)
