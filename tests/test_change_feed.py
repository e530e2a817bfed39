import asyncio

import fakeredis

from peerflex.repositories.base import Repository
from peerflex.utils.change_feed import ANY, DELETE, INSERT, UPDATE, ChangeFeed
from peerflex.utils.realtime_bus import LocalBus, RedisBus


class NotesRepository(Repository):

    table = "notes"


async def test_repository_writes_publish_changes(db, feed, eventually):
    repo = NotesRepository(db, feed)
    changes = []
    sub = await feed.subscribe("notes", changes.append)

    row = await repo.insert({"owner": "u1", "text": "draft"})
    await repo.update_by_id(row["id"], {"$set": {"text": "final"}})
    await repo.delete_by_id(row["id"])

    def check():
        assert [c.type for c in changes] == [INSERT, UPDATE, DELETE]

    await eventually(check)
    assert changes[1].old["text"] == "draft"
    assert changes[1].new["text"] == "final"
    assert changes[2].row["id"] == row["id"]
    await sub.unsubscribe()


async def test_event_and_filter_scoping(db, feed, eventually):
    repo = NotesRepository(db, feed)
    inserts, mine = [], []
    await feed.subscribe("notes", inserts.append, event=INSERT)
    await feed.subscribe("notes", mine.append, event=ANY, filter={"owner": "u1"})

    row = await repo.insert({"owner": "u1"})
    await repo.insert({"owner": "u2"})
    await repo.update_by_id(row["id"], {"$set": {"seen": True}})

    def check():
        assert [c.row["owner"] for c in inserts] == ["u1", "u2"]
        assert [c.type for c in mine] == [INSERT, UPDATE]

    await eventually(check)


async def test_unsubscribe_stops_delivery_and_is_idempotent(bus, feed):
    received = []
    sub = await feed.subscribe("notes", received.append)
    assert bus.subscriber_count("table:notes") == 1

    await sub.unsubscribe()
    await sub.unsubscribe()
    await feed.publish("notes", INSERT, new={"id": "1"})
    await asyncio.sleep(0.05)

    assert received == []
    assert bus.subscriber_count("table:notes") == 0


async def test_failing_subscriber_does_not_stop_the_stream(feed, eventually, caplog):
    received = []

    def flaky(change):
        if change.new.get("id") == "bad":
            raise RuntimeError("boom")
        received.append(change.new["id"])

    await feed.subscribe("notes", flaky)
    await feed.publish("notes", INSERT, new={"id": "bad"})
    await feed.publish("notes", INSERT, new={"id": "good"})

    def check():
        assert received == ["good"]

    await eventually(check)
    assert "Subscriber on table:notes failed" in caplog.text


async def test_publish_failure_is_logged_not_raised(caplog):
    class BrokenBus(LocalBus):
        async def publish(self, channel, message):
            raise ConnectionError("bus down")

    await ChangeFeed(BrokenBus()).publish("notes", INSERT, new={"id": "1"})

    assert "Failed to publish INSERT on notes" in caplog.text


async def test_redis_bus_round_trip(eventually):
    client = fakeredis.FakeAsyncRedis()
    feed = ChangeFeed(RedisBus(client))
    received = []
    sub = await feed.subscribe("messages", received.append, filter={"chat_room_id": "room-1"})

    await feed.publish("messages", INSERT, new={"id": 7, "chat_room_id": "room-1"})
    await feed.publish("messages", INSERT, new={"id": 8, "chat_room_id": "room-2"})

    def check():
        assert [c.new["id"] for c in received] == [7]

    await eventually(check, timeout=3.0)
    await sub.unsubscribe()
    await client.aclose()
