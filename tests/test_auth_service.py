import pytest
from pydantic import ValidationError as SchemaError

from peerflex.core.errors import AuthenticationError, ValidationError
from peerflex.repositories.user_repository import ProfileRepository, UserRepository
from peerflex.schemas.user import UserCreate
from peerflex.services.auth_service import AuthService
from peerflex.utils.security import create_access_token


@pytest.fixture
def auth(db, feed):
    return AuthService(UserRepository(db), ProfileRepository(db, feed))


async def test_sign_up_creates_profile_and_signs_in(auth, db):
    user = await auth.sign_up(UserCreate(email="Dana@Example.com", password="Passw0rdX", full_name="Dana Lee"))

    assert user.email == "dana@example.com"
    profile = await ProfileRepository(db).get(user.id)
    assert profile["full_name"] == "Dana Lee"
    assert profile["username"] == "danalee"

    session = await auth.sign_in("dana@example.com", "Passw0rdX")
    assert session.user_id == user.id
    assert AuthService.get_session(session.access_token).user_id == user.id


async def test_sign_in_rejects_bad_credentials(auth):
    await auth.sign_up(UserCreate(email="dana@example.com", password="Passw0rdX", full_name="Dana Lee"))

    with pytest.raises(AuthenticationError):
        await auth.sign_in("dana@example.com", "wrong")
    with pytest.raises(AuthenticationError):
        await auth.sign_in("nobody@example.com", "Passw0rdX")
    with pytest.raises(ValidationError):
        await auth.sign_up(UserCreate(email="dana@example.com", password="Passw0rdX", full_name="Dana Again"))


@pytest.mark.parametrize(
    "password",
    ["Sh0rt", "nouppercase1", "NOLOWERCASE1", "NoDigitsHere"],
)
def test_password_policy(password):
    with pytest.raises(SchemaError):
        UserCreate(email="x@example.com", password=password, full_name="X")


def test_get_session():
    assert AuthService.get_session(None) is None
    with pytest.raises(AuthenticationError):
        AuthService.get_session("garbage")

    session = AuthService.get_session(create_access_token("abc123", email="a@example.com"))
    assert (session.user_id, session.email) == ("abc123", "a@example.com")
