from fastapi import APIRouter, Depends, Query

from peerflex.database.connection import mongo_db_dependency
from peerflex.schemas.user import Session
from peerflex.services.notification_service import NotificationService
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import build_notification_service, change_feed_dependency, get_session


router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(
    db = Depends(mongo_db_dependency),
    feed: ChangeFeed = Depends(change_feed_dependency),
    session: Session = Depends(get_session),
) -> NotificationService:
    return build_notification_service(db, feed, session)


@router.get("")
async def list_notifications(limit: int = Query(50, ge=1, le=200), service: NotificationService = Depends(get_notification_service)):
    return {"items": await service.get_user_notifications(limit=limit)}


@router.get("/unread_count")
async def unread_count(service: NotificationService = Depends(get_notification_service)):
    return {"count": await service.get_unread_count()}


@router.post("/read_all")
async def mark_all_read(service: NotificationService = Depends(get_notification_service)):
    return {"updated": await service.mark_all_as_read()}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, service: NotificationService = Depends(get_notification_service)):
    await service.mark_as_read(notification_id)
    return {"msg": "Marked as read"}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, service: NotificationService = Depends(get_notification_service)):
    await service.delete_notification(notification_id)
    return {"msg": "Deleted"}
