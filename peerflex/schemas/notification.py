from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from peerflex.schemas.profile import Profile


NotificationType = Literal["friend_request", "note_shared", "connection_accepted", "message", "system"]


class Notification(BaseModel):

    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType = "system"
    from_user_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime
    from_user: Optional[Profile] = None
