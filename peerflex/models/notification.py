from typing import Any, Dict, Literal, Optional, TypedDict


NotificationType = Literal["friend_request", "note_shared", "connection_accepted", "message", "system"]


class NotificationDocument(TypedDict, total=False):
    _id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    from_user_id: Optional[str]
    data: Dict[str, Any]
    is_read: bool
    created_at: str
