import logging
from typing import Optional

from pydantic import ValidationError as SchemaError

from peerflex.core.errors import AuthenticationError, ValidationError
from peerflex.repositories.user_repository import ProfileRepository, UserRepository
from peerflex.schemas.user import Session, TokenPayload, UserCreate, UserPublic
from peerflex.utils.security import create_access_token, decode_access_token, hash_password, verify_password


logger = logging.getLogger(__name__)


class AuthService:
    """Sign-up, sign-in and token sessions."""

    def __init__(self, user_repository: UserRepository, profile_repository: ProfileRepository):
        self.user_repository = user_repository
        self.profile_repository = profile_repository

    async def sign_up(self, data: UserCreate) -> UserPublic:
        """
        Register a new account
        - reject an email that already exists
        - hash the password
        - create the credentials row and the public profile
        """
        email = data.email.lower()
        existing = await self.user_repository.get_user_by_email(email)
        if existing:
            raise ValidationError("Email already registered")

        user_id = await self.user_repository.create_user(email=email, hashed_password=hash_password(data.password))
        await self.profile_repository.create_profile(user_id, full_name=data.full_name, username=data.username)
        logger.info("Registered user %s", user_id)
        return UserPublic(id=user_id, email=email, full_name=data.full_name)

    async def sign_in(self, email: str, password: str) -> Session:
        user = await self.user_repository.get_user_by_email(email.lower())
        if not user or not verify_password(password, user.get("hashed_password", "")):
            logger.info("Failed sign-in for %s", email)
            raise AuthenticationError("Invalid credentials")
        token = create_access_token(user["id"], email=user["email"])
        return Session(user_id=user["id"], email=user["email"], access_token=token)

    @staticmethod
    def get_session(token: Optional[str]) -> Optional[Session]:
        """Decode a bearer token; None when there is no token at all."""
        if not token:
            return None
        try:
            payload = TokenPayload.model_validate(decode_access_token(token))
        except SchemaError as exc:
            raise AuthenticationError("Could not validate credentials") from exc
        return Session(user_id=payload.sub, email=payload.email, access_token=token)
