from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from peerflex.schemas.profile import Profile


class ChatMember(BaseModel):

    id: str
    chat_room_id: str
    user_id: str
    role: Literal["owner", "admin", "member"] = "member"
    joined_at: Optional[datetime] = None
    profile: Optional[Profile] = None


class Message(BaseModel):

    # the transport is not consistent about numeric vs string ids
    id: Union[str, int]
    chat_room_id: str
    user_id: str
    content: str
    message_type: Literal["text", "image", "file", "system"] = "text"
    file_url: Optional[str] = None
    reply_to: Optional[str] = None
    read_by: List[str] = Field(default_factory=list)
    created_at: datetime
    user: Optional[Profile] = None


class ChatRoom(BaseModel):

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    is_group: bool = False
    is_public: bool = False
    subject: Optional[str] = None
    max_members: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime
    members: List[ChatMember] = Field(default_factory=list)
    last_message: Optional[Message] = None


class Conversation(BaseModel):

    id: str
    type: Literal["direct", "group"]
    name: str
    last_message: Optional[str] = None
    timestamp: datetime
    unread: int = 0
    avatar: str
    chat_room: ChatRoom
    other_user: Optional[Profile] = None


class SendMessage(BaseModel):

    content: str
    message_type: Literal["text", "image", "file"] = "text"


class GroupRoomCreate(BaseModel):

    name: str
    member_ids: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    subject: Optional[str] = None
