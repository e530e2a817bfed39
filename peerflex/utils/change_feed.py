"""Table change feed on top of the realtime bus.

Repositories publish one ``ChangeEvent`` per written row on the channel
``table:<name>``. Subscribers scope a subscription by event type and an
equality filter on the changed row, the same shape as a hosted database's
``postgres_changes`` channel.
"""

import asyncio
import contextlib
import inspect
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId

from peerflex.utils.realtime_bus import get_bus


logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ANY = "*"


@dataclass
class ChangeEvent:
    table: str
    type: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    @property
    def row(self) -> Dict[str, Any]:
        return self.new or self.old


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, set):
        return list(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


async def maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _matches(row: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    if not filter:
        return True
    for key, expected in filter.items():
        if key not in row or str(row[key]) != str(expected):
            return False
    return True


class Subscription:
    """Handle for one live listener. ``unsubscribe()`` is idempotent."""

    def __init__(self, subscriber, task: "asyncio.Task", label: str) -> None:
        self._subscriber = subscriber
        self._task = task
        self.label = label
        self.active = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        await self._subscriber.cancel()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        logger.debug("Unsubscribed %s", self.label)


class SubscriptionGroup:
    """Several subscriptions torn down together."""

    def __init__(self, subscriptions: List[Subscription], label: str) -> None:
        self._subscriptions = subscriptions
        self.label = label

    @property
    def active(self) -> bool:
        return any(sub.active for sub in self._subscriptions)

    async def unsubscribe(self) -> None:
        for sub in self._subscriptions:
            await sub.unsubscribe()


class ChangeFeed:

    def __init__(self, bus) -> None:
        self._bus = bus

    @staticmethod
    def channel(table: str) -> str:
        return f"table:{table}"

    async def publish(self, table: str, event_type: str, new: Optional[dict] = None, old: Optional[dict] = None) -> None:
        payload = {"table": table, "type": event_type, "new": new or {}, "old": old or {}}
        message = json.dumps(payload, default=_json_default)
        try:
            await self._bus.publish(self.channel(table), message)
        except Exception:
            logger.warning("Failed to publish %s on %s", event_type, table, exc_info=True)

    async def subscribe(
        self,
        table: str,
        on_change: Callable[[ChangeEvent], Any],
        event: str = ANY,
        filter: Optional[Dict[str, Any]] = None,
    ) -> Subscription:
        label = f"{table}:{event}:{filter or {}}"

        async def _dispatch(raw: str) -> None:
            data = json.loads(raw)
            change = ChangeEvent(
                table=data.get("table", table),
                type=data.get("type", ""),
                new=data.get("new") or {},
                old=data.get("old") or {},
            )
            if event != ANY and change.type != event:
                return
            if not _matches(change.row, filter):
                return
            await maybe_await(on_change(change))

        subscriber = await self._bus.subscribe(self.channel(table), _dispatch)
        task = asyncio.create_task(subscriber.run())
        logger.debug("Subscribed %s", label)
        return Subscription(subscriber, task, label)


_feed: Optional[ChangeFeed] = None


async def get_feed() -> ChangeFeed:
    global _feed
    if _feed is None:
        _feed = ChangeFeed(await get_bus())
    return _feed


def reset_feed() -> None:
    global _feed
    _feed = None
