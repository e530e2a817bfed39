from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Profile(BaseModel):

    id: str
    username: str = ""
    full_name: str = ""
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    major: Optional[str] = None
    university: Optional[str] = None
    year_of_study: Optional[int] = None
    skills: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    is_online: bool = False
    last_online: Optional[datetime] = None
    reputation_score: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):

    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    major: Optional[str] = None
    university: Optional[str] = None
    year_of_study: Optional[int] = None
    skills: Optional[List[str]] = None
    interests: Optional[List[str]] = None
