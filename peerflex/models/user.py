from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    email: str
    hashed_password: str
    created_at: str


class ProfileDocument(TypedDict, total=False):
    # shares _id with the UserDocument it belongs to
    _id: str
    username: str
    full_name: str
    avatar_url: Optional[str]
    bio: Optional[str]
    major: Optional[str]
    university: Optional[str]
    year_of_study: Optional[int]
    skills: list[str]
    interests: list[str]
    is_online: bool
    last_online: Optional[str]
    reputation_score: int
    created_at: str
    updated_at: str
