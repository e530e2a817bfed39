import logging
from typing import List, Optional

from peerflex.schemas.event import Event, EventFilters
from peerflex.services.event_service import EventService
from peerflex.sync.base import OnChange, ViewState, error_text
from peerflex.utils.change_feed import DELETE, INSERT, UPDATE, Subscription


logger = logging.getLogger(__name__)


class EventListView(ViewState):

    def __init__(
        self,
        service: EventService,
        filters: Optional[EventFilters] = None,
        on_change: Optional[OnChange] = None,
    ) -> None:
        super().__init__(on_change)
        self._service = service
        self.filters = filters or EventFilters()
        self.events: List[Event] = []
        self.loading = True
        self.error: Optional[str] = None
        self._listener: Optional[Subscription] = None

    async def start(self) -> None:
        try:
            self._listener = await self._service.subscribe_to_events(self._on_event)
        except Exception:
            logger.exception("Failed to subscribe to events")
        await self.fetch()

    async def close(self) -> None:
        if self._listener is not None:
            await self._listener.unsubscribe()
            self._listener = None

    async def fetch(self) -> None:
        self.loading = True
        self.error = None
        try:
            self.events = await self._service.get_events(self.filters)
        except Exception as exc:
            logger.error("Failed to fetch events: %s", exc)
            self.error = error_text(exc, "Failed to fetch events")
        finally:
            self.loading = False
        await self._changed()

    async def register(self, event_id: str) -> None:
        await self._service.register_for_event(event_id)
        await self.fetch()

    async def cancel(self, event_id: str) -> None:
        await self._service.cancel_registration(event_id)
        await self.fetch()

    async def _on_event(self, change_type: str, event_id: str, event: Optional[Event]) -> None:
        if change_type == INSERT and event is not None:
            self.events = [event] + self.events
        elif change_type == UPDATE and event is not None:
            self.events = [event if e.id == event_id else e for e in self.events]
        elif change_type == DELETE:
            self.events = [e for e in self.events if e.id != event_id]
        else:
            return
        await self._changed()

    def snapshot(self) -> dict:
        return {
            "events": [e.model_dump(mode="json") for e in self.events],
            "loading": self.loading,
            "error": self.error,
        }
