import logging
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from peerflex.core.errors import NotAuthenticatedError, RemoteServiceError
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.user import Session


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_row(model: Type[ModelT], row: Dict[str, Any]) -> ModelT:
    """Validate a store row into its record type; malformed rows are a data-service failure."""
    try:
        return model.model_validate(row)
    except SchemaError as exc:
        logger.error("Malformed %s row %s: %s", model.__name__, row.get("id"), exc)
        raise RemoteServiceError(f"Malformed {model.__name__} returned by the data service") from exc


def parse_push(model: Type[ModelT], row: Dict[str, Any]) -> Optional[ModelT]:
    """Like parse_row, but a malformed pushed row is logged and dropped."""
    try:
        return model.model_validate(row)
    except SchemaError as exc:
        logger.warning("Dropping malformed %s push %s: %s", model.__name__, row.get("id"), exc)
        return None


class ScopedService:
    """Base for services acting on behalf of the signed-in viewer."""

    def __init__(self, session: Optional[Session]) -> None:
        self._session = session

    @property
    def viewer_id(self) -> Optional[str]:
        return self._session.user_id if self._session else None

    def _require_user(self) -> str:
        if self._session is None:
            raise NotAuthenticatedError("Not authenticated")
        return self._session.user_id


async def attach_profiles(
    profiles: ProfileRepository,
    rows: List[Dict[str, Any]],
    key: str,
    target: str,
) -> List[Dict[str, Any]]:
    """Embed the profile referenced by ``row[key]`` as ``row[target]``."""
    ids = {row[key] for row in rows if row.get(key)}
    found = await profiles.get_many(list(ids))
    for row in rows:
        row[target] = found.get(row.get(key))
    return rows


def unique(values: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)
