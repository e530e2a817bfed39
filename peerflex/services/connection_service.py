import logging
from typing import List, Optional

from peerflex.core.errors import DuplicateRequestError, NotAuthorizedError, NotFoundError, ValidationError
from peerflex.repositories.connection_repository import ConnectionRequestRepository, UserConnectionRepository
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.connection import ConnectionRequest, ConnectionStatus, UserConnection
from peerflex.schemas.user import Session
from peerflex.services.base import ScopedService, attach_profiles, parse_row
from peerflex.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


class ConnectionService(ScopedService):

    def __init__(
        self,
        request_repo: ConnectionRequestRepository,
        connection_repo: UserConnectionRepository,
        profile_repo: ProfileRepository,
        notifications: NotificationService,
        session: Optional[Session],
    ) -> None:
        super().__init__(session)
        self._request_repo = request_repo
        self._connection_repo = connection_repo
        self._profile_repo = profile_repo
        self._notifications = notifications

    async def _notify(self, user_id: str, title: str, message: str, type: str, data: dict) -> None:
        try:
            await self._notifications.create_notification(
                user_id=user_id, title=title, message=message, type=type, from_user_id=self.viewer_id, data=data
            )
        except Exception:
            logger.exception("Failed to create %s notification for %s", type, user_id)

    async def _viewer_name(self) -> str:
        profile = await self._profile_repo.get(self.viewer_id)
        return (profile or {}).get("full_name") or "Someone"

    async def _get_request(self, request_id: str) -> dict:
        request = await self._request_repo.get(request_id)
        if request is None:
            raise NotFoundError("Connection request not found")
        return request

    async def send_request(self, to_user_id: str, message: Optional[str] = None) -> ConnectionRequest:
        user_id = self._require_user()
        if to_user_id == user_id:
            raise ValidationError("Cannot connect with yourself")
        if await self._profile_repo.get(to_user_id) is None:
            raise NotFoundError("User not found")
        if await self._connection_repo.get_accepted(user_id, to_user_id):
            raise ValidationError("Already connected")
        if await self._request_repo.get_pending(user_id, to_user_id) or await self._request_repo.get_pending(
            to_user_id, user_id
        ):
            raise DuplicateRequestError("A connection request is already pending")

        row = await self._request_repo.create_request(user_id, to_user_id, message)
        await attach_profiles(self._profile_repo, [row], key="from_user_id", target="from_profile")
        await attach_profiles(self._profile_repo, [row], key="to_user_id", target="to_profile")
        request = parse_row(ConnectionRequest, row)

        name = request.from_profile.full_name if request.from_profile else "Someone"
        await self._notify(
            to_user_id,
            title="New connection request",
            message=f"{name} wants to connect with you",
            type="friend_request",
            data={"request_id": request.id},
        )
        return request

    async def accept_request(self, request_id: str) -> None:
        user_id = self._require_user()
        request = await self._get_request(request_id)
        if request["to_user_id"] != user_id:
            raise NotAuthorizedError("Only the recipient can accept this request")
        if request["status"] != "pending":
            raise ValidationError("Connection request is no longer pending")
        await self._request_repo.update_status(request_id, "accepted")
        await self._connection_repo.connect(request["from_user_id"], user_id)
        logger.info("Connection %s accepted: %s <-> %s", request_id, request["from_user_id"], user_id)
        await self._notify(
            request["from_user_id"],
            title="Connection accepted",
            message=f"{await self._viewer_name()} accepted your connection request",
            type="connection_accepted",
            data={"request_id": request_id},
        )

    async def reject_request(self, request_id: str) -> None:
        user_id = self._require_user()
        request = await self._get_request(request_id)
        if request["to_user_id"] != user_id:
            raise NotAuthorizedError("Only the recipient can reject this request")
        if request["status"] != "pending":
            raise ValidationError("Connection request is no longer pending")
        await self._request_repo.update_status(request_id, "rejected")

    async def withdraw_request(self, request_id: str) -> None:
        user_id = self._require_user()
        request = await self._get_request(request_id)
        if request["from_user_id"] != user_id:
            raise NotAuthorizedError("Only the sender can withdraw this request")
        if request["status"] != "pending":
            raise ValidationError("Connection request is no longer pending")
        await self._request_repo.delete_by_id(request_id)

    async def get_pending_requests(self) -> List[ConnectionRequest]:
        user_id = self._require_user()
        rows = await self._request_repo.list_received(user_id)
        await attach_profiles(self._profile_repo, rows, key="from_user_id", target="from_profile")
        return [parse_row(ConnectionRequest, row) for row in rows]

    async def get_connections(self) -> List[UserConnection]:
        user_id = self._require_user()
        rows = await self._connection_repo.list_accepted(user_id)
        await attach_profiles(self._profile_repo, rows, key="connected_user_id", target="connected_user")
        return [parse_row(UserConnection, row) for row in rows]

    async def get_connection_status(self, other_user_id: str) -> ConnectionStatus:
        user_id = self._require_user()
        if await self._connection_repo.get_accepted(user_id, other_user_id):
            return ConnectionStatus(is_connected=True, has_pending_request=False)

        sent = await self._request_repo.get_pending(user_id, other_user_id)
        if sent:
            return ConnectionStatus(has_pending_request=True, request_from_me=True, request_id=sent["id"])

        received = await self._request_repo.get_pending(other_user_id, user_id)
        if received:
            return ConnectionStatus(has_pending_request=True, request_from_me=False, request_id=received["id"])

        return ConnectionStatus()

    async def remove_connection(self, connected_user_id: str) -> None:
        user_id = self._require_user()
        removed = await self._connection_repo.disconnect(user_id, connected_user_id)
        if not removed:
            raise NotFoundError("Connection not found")
