import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis

from peerflex.core.config import settings


logger = logging.getLogger(__name__)

OnMessage = Callable[[str], Awaitable[None]]


class LocalBus:
    """In-process pub/sub. Each subscriber gets its own queue, drained by run()."""

    enabled = True

    def __init__(self) -> None:
        self._queues: Dict[str, List[asyncio.Queue]] = {}

    async def publish(self, channel: str, message: str) -> None:
        for queue in list(self._queues.get(channel, [])):
            queue.put_nowait(message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.setdefault(channel, []).append(queue)
        bus = self

        class _Sub:
            async def run(self_inner):
                while True:
                    message = await queue.get()
                    try:
                        await on_message(message)
                    except Exception:
                        logger.exception("Subscriber on %s failed", channel)

            async def cancel(self_inner):
                queues = bus._queues.get(channel, [])
                if queue in queues:
                    queues.remove(queue)
                if not queues:
                    bus._queues.pop(channel, None)

        return _Sub()

    def subscriber_count(self, channel: str) -> int:
        return len(self._queues.get(channel, []))

    async def close(self) -> None:
        self._queues.clear()


class RedisBus:

    enabled = True

    def __init__(self, client: "redis.Redis") -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBus":
        return cls(redis.from_url(url))

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except Exception:
                        logger.warning("Redis pubsub read failed on %s", channel, exc_info=True)
                        await asyncio.sleep(0.5)
                        continue
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        try:
                            await on_message(data)
                        except Exception:
                            logger.exception("Subscriber on %s failed", channel)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except Exception:
                    logger.warning("Redis unsubscribe from %s failed", channel, exc_info=True)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if settings.REDIS_URL:
        logger.info("Realtime bus: redis")
        _bus = RedisBus.from_url(settings.REDIS_URL)
    else:
        logger.info("Realtime bus: in-process")
        _bus = LocalBus()
    return _bus


def set_bus(bus) -> None:
    global _bus
    _bus = bus


async def close_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
    _bus = None
