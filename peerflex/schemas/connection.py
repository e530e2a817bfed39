from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel

from peerflex.schemas.profile import Profile


class ConnectionState(str, Enum):
    NOT_CONNECTED = "not_connected"
    PENDING = "pending"
    CONNECTED = "connected"


class ConnectionRequest(BaseModel):

    id: str
    from_user_id: str
    to_user_id: str
    status: Literal["pending", "accepted", "rejected"] = "pending"
    message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    from_profile: Optional[Profile] = None
    to_profile: Optional[Profile] = None


class UserConnection(BaseModel):

    id: str
    user_id: str
    connected_user_id: str
    status: Literal["pending", "accepted", "blocked"] = "accepted"
    created_at: datetime
    connected_at: Optional[datetime] = None
    connected_user: Optional[Profile] = None


class ConnectionStatus(BaseModel):

    is_connected: bool = False
    has_pending_request: bool = False
    request_from_me: Optional[bool] = None
    request_id: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        if self.is_connected:
            return ConnectionState.CONNECTED
        if self.has_pending_request:
            return ConnectionState.PENDING
        return ConnectionState.NOT_CONNECTED


class ConnectionRequestCreate(BaseModel):

    to_user_id: str
    message: Optional[str] = None
