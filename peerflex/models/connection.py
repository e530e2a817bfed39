from typing import Literal, Optional, TypedDict


class ConnectionRequestDocument(TypedDict, total=False):
    _id: str
    from_user_id: str
    to_user_id: str
    status: Literal["pending", "accepted", "rejected"]
    message: Optional[str]
    created_at: str
    updated_at: str


class UserConnectionDocument(TypedDict, total=False):
    # one row per direction: (a -> b) and (b -> a)
    _id: str
    user_id: str
    connected_user_id: str
    status: Literal["pending", "accepted", "blocked"]
    created_at: str
    connected_at: str
