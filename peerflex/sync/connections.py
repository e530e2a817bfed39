import logging
from typing import List, Optional

from peerflex.core.errors import InvalidTransitionError
from peerflex.schemas.connection import ConnectionRequest, ConnectionState, ConnectionStatus, UserConnection
from peerflex.services.connection_service import ConnectionService
from peerflex.sync.base import OnChange, ViewState, error_text


logger = logging.getLogger(__name__)


class ConnectionStatusTracker(ViewState):
    """Connection state between the viewer and one other user.

    Each transition checks the cached state first, performs the remote
    mutation, then always re-derives the status from a fresh query.
    """

    def __init__(self, service: ConnectionService, other_user_id: str, on_change: Optional[OnChange] = None) -> None:
        super().__init__(on_change)
        self._service = service
        self.other_user_id = other_user_id
        self.status = ConnectionStatus()

    @property
    def state(self) -> ConnectionState:
        return self.status.state

    @property
    def sent_by_me(self) -> bool:
        return self.state == ConnectionState.PENDING and bool(self.status.request_from_me)

    @property
    def sent_by_them(self) -> bool:
        return self.state == ConnectionState.PENDING and not self.status.request_from_me

    async def refresh(self) -> ConnectionStatus:
        self.status = await self._service.get_connection_status(self.other_user_id)
        await self._changed()
        return self.status

    def _require(self, allowed: bool, action: str) -> None:
        if not allowed:
            raise InvalidTransitionError(f"Cannot {action} while {self.state.value}")

    async def send_request(self, message: Optional[str] = None) -> ConnectionStatus:
        self._require(self.state == ConnectionState.NOT_CONNECTED, "send a request")
        try:
            await self._service.send_request(self.other_user_id, message)
        finally:
            await self.refresh()
        return self.status

    async def accept_request(self) -> ConnectionStatus:
        self._require(self.sent_by_them, "accept a request")
        try:
            await self._service.accept_request(self.status.request_id)
        finally:
            await self.refresh()
        return self.status

    async def reject_request(self) -> ConnectionStatus:
        self._require(self.sent_by_them, "reject a request")
        try:
            await self._service.reject_request(self.status.request_id)
        finally:
            await self.refresh()
        return self.status

    async def withdraw_request(self) -> ConnectionStatus:
        self._require(self.sent_by_me, "withdraw a request")
        try:
            await self._service.withdraw_request(self.status.request_id)
        finally:
            await self.refresh()
        return self.status

    async def remove_connection(self) -> ConnectionStatus:
        self._require(self.state == ConnectionState.CONNECTED, "remove a connection")
        try:
            await self._service.remove_connection(self.other_user_id)
        finally:
            await self.refresh()
        return self.status


class ConnectionsView(ViewState):
    """The viewer's connections and incoming pending requests."""

    def __init__(self, service: ConnectionService, on_change: Optional[OnChange] = None) -> None:
        super().__init__(on_change)
        self._service = service
        self.connections: List[UserConnection] = []
        self.pending_requests: List[ConnectionRequest] = []
        self.loading = True
        self.error: Optional[str] = None

    async def load(self) -> None:
        self.loading = True
        try:
            self.connections = await self._service.get_connections()
            self.pending_requests = await self._service.get_pending_requests()
            self.error = None
        except Exception as exc:
            logger.warning("Failed to load connections: %s", exc)
            self.error = error_text(exc, "Failed to load connections")
        finally:
            self.loading = False
        await self._changed()

    async def _mutate(self, action, fallback: str, *args) -> bool:
        try:
            await action(*args)
        except Exception as exc:
            logger.warning("%s: %s", fallback, exc)
            self.error = error_text(exc, fallback)
            await self._changed()
            return False
        await self.load()
        return True

    async def send_request(self, to_user_id: str, message: Optional[str] = None) -> bool:
        return await self._mutate(self._service.send_request, "Failed to send request", to_user_id, message)

    async def accept_request(self, request_id: str) -> bool:
        return await self._mutate(self._service.accept_request, "Failed to accept request", request_id)

    async def reject_request(self, request_id: str) -> bool:
        return await self._mutate(self._service.reject_request, "Failed to reject request", request_id)

    async def remove_connection(self, connected_user_id: str) -> bool:
        return await self._mutate(self._service.remove_connection, "Failed to remove connection", connected_user_id)

    async def get_connection_status(self, other_user_id: str) -> ConnectionStatus:
        try:
            return await self._service.get_connection_status(other_user_id)
        except Exception as exc:
            self.error = error_text(exc, "Failed to get connection status")
            return ConnectionStatus()

    def snapshot(self) -> dict:
        return {
            "connections": [c.model_dump(mode="json") for c in self.connections],
            "pending_requests": [r.model_dump(mode="json") for r in self.pending_requests],
            "loading": self.loading,
            "error": self.error,
        }
