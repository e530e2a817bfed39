from typing import List, Literal, Optional, TypedDict


MemberRole = Literal["owner", "admin", "member"]
MessageType = Literal["text", "image", "file", "system"]


class ChatRoomDocument(TypedDict, total=False):
    _id: str
    name: Optional[str]
    description: Optional[str]
    is_group: bool
    is_public: bool
    subject: Optional[str]
    max_members: Optional[int]
    created_by: str
    created_at: str


class ChatMemberDocument(TypedDict, total=False):
    _id: str
    chat_room_id: str
    user_id: str
    role: MemberRole
    joined_at: str


class MessageDocument(TypedDict, total=False):
    _id: str
    chat_room_id: str
    user_id: str
    content: str
    message_type: MessageType
    file_url: Optional[str]
    reply_to: Optional[str]
    # readers only ever get added
    read_by: List[str]
    created_at: str
