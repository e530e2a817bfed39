import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserBase(BaseModel):

    email: EmailStr


class UserCreate(UserBase):

    password: str
    full_name: str = Field(min_length=1)
    username: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"\d", value):
            raise ValueError("Password must contain at least one number")
        return value


class UserLogin(UserBase):

    password: str


class UserPublic(UserBase):

    id: str
    full_name: Optional[str] = None


class Token(BaseModel):

    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):

    sub: str
    email: Optional[str] = None
    exp: int


class Session(BaseModel):
    """The signed-in viewer every scoped service call acts for."""

    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None
