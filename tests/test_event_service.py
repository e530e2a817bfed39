from datetime import datetime, timedelta, timezone

import pytest

from peerflex.core.errors import AlreadyRegisteredError, EventFullError, NotAuthenticatedError, NotAuthorizedError, NotFoundError
from peerflex.repositories.event_repository import EventCategoryRepository
from peerflex.repositories.notification_repository import NotificationRepository
from peerflex.schemas.event import EventCreate, EventFilters, NearLocation
from peerflex.schemas.location import Location
from peerflex.sync.events import EventListView
from peerflex.utils.change_feed import DELETE, INSERT, UPDATE
from peerflex.utils.dependencies import build_attendee_service, build_event_service


START = datetime(2030, 1, 10, 18, 0, tzinfo=timezone.utc)


def event_data(title: str, **overrides) -> EventCreate:
    data = {"title": title, "description": "Come along", "event_type": "study", "start_time": START}
    data.update(overrides)
    return EventCreate(**data)


async def test_create_event_applies_defaults_and_notifies(db, feed, make_user):
    alice = await make_user("Alice Smith")
    service = build_event_service(db, feed, alice)

    event = await service.create_event(event_data("Algorithms night", location=Location(latitude=12.97, longitude=77.59)))

    assert event.max_attendees == 50
    assert event.difficulty_level == "beginner"
    assert event.price == 0
    assert event.is_public is True
    assert event.created_by == alice.user_id
    assert event.user.full_name == "Alice Smith"
    assert event.location == Location(latitude=12.97, longitude=77.59)
    stored = await db["events"].find_one({"title": "Algorithms night"})
    assert stored["location"] == {"type": "Point", "coordinates": [77.59, 12.97]}

    [notification] = await NotificationRepository(db, feed).list_for_user(alice.user_id)
    assert notification["type"] == "system"
    assert notification["data"] == {"event_id": event.id}


async def test_create_event_survives_notification_failure(db, feed, make_user, monkeypatch, caplog):
    alice = await make_user("Alice Smith")
    service = build_event_service(db, feed, alice)

    async def broken(*args, **kwargs):
        raise RuntimeError("notification store down")

    monkeypatch.setattr(service._notifications, "create_notification", broken)

    event = await service.create_event(event_data("Still created"))

    assert event.title == "Still created"
    assert "Failed to create notification" in caplog.text


async def test_get_events_filters(db, feed, make_user):
    alice = await make_user("Alice Smith")
    service = build_event_service(db, feed, alice)
    await service.create_event(event_data("Later", start_time=START + timedelta(days=2), tags=["python"]))
    await service.create_event(event_data("Sooner"))
    await service.create_event(event_data("Football", event_type="sports"))
    await service.create_event(event_data("Hidden", is_public=False))

    assert [e.title for e in await service.get_events()] == ["Sooner", "Football", "Later"]
    assert [e.title for e in await service.get_events(EventFilters(event_type="all"))] == ["Sooner", "Football", "Later"]
    assert [e.title for e in await service.get_events(EventFilters(event_type="sports"))] == ["Football"]
    assert [e.title for e in await service.get_events(EventFilters(search="LATER"))] == ["Later"]
    assert [e.title for e in await service.get_events(EventFilters(search="python"))] == ["Later"]
    assert [e.title for e in await service.get_events(EventFilters(limit=2, page=1))] == ["Later"]


async def test_get_events_near_location(db, feed, make_user):
    alice = await make_user("Alice Smith")
    service = build_event_service(db, feed, alice)
    await service.create_event(event_data("Bangalore", location=Location(latitude=12.9716, longitude=77.5946)))
    await service.create_event(event_data("Chennai", location=Location(latitude=13.0827, longitude=80.2707)))
    await service.create_event(event_data("Nowhere"))

    near = await service.get_events(EventFilters(near_location=NearLocation(lat=12.98, lng=77.60)))
    assert [e.title for e in near] == ["Bangalore"]

    wide = await service.get_events(EventFilters(near_location=NearLocation(lat=12.98, lng=77.60, radius=400)))
    assert {e.title for e in wide} == {"Bangalore", "Chennai"}


async def test_update_event_owner_only(db, feed, make_user):
    alice = await make_user("Alice Smith")
    bob = await make_user("Bob Jones")
    event = await build_event_service(db, feed, alice).create_event(event_data("Mine"))

    with pytest.raises(NotAuthorizedError, match="Not authorized to update this event"):
        await build_event_service(db, feed, bob).update_event(event.id, {"title": "Stolen"})

    updated = await build_event_service(db, feed, alice).update_event(event.id, {"title": "Still mine"})
    assert updated.title == "Still mine"


async def test_registration_capacity_and_duplicates(db, feed, make_user):
    alice = await make_user("Alice Smith")
    bob = await make_user("Bob Jones")
    carol = await make_user("Carol White")
    event = await build_event_service(db, feed, alice).create_event(event_data("Tiny", max_attendees=2))

    await build_attendee_service(db, feed, alice).register_for_event(event.id)
    bob_attendee = build_attendee_service(db, feed, bob)
    await bob_attendee.register_for_event(event.id)

    with pytest.raises(AlreadyRegisteredError):
        await bob_attendee.register_for_event(event.id)
    with pytest.raises(EventFullError):
        await build_attendee_service(db, feed, carol).register_for_event(event.id)

    refreshed = await build_event_service(db, feed, alice).get_event_by_id(event.id)
    assert refreshed.registered_count == 2

    await bob_attendee.unregister_from_event(event.id)
    await bob_attendee.unregister_from_event(event.id)
    assert await bob_attendee.get_attendee_count(event.id) == 1
    assert (await bob_attendee.get_user_event_status(event.id)).status == "cancelled"

    await build_attendee_service(db, feed, carol).register_for_event(event.id)
    refreshed = await build_event_service(db, feed, alice).get_event_by_id(event.id)
    assert refreshed.registered_count == 2


async def test_check_in(db, feed, make_user):
    alice = await make_user("Alice Smith")
    bob = await make_user("Bob Jones")
    event = await build_event_service(db, feed, alice).create_event(event_data("Workshop"))
    await build_attendee_service(db, feed, bob).register_for_event(event.id)

    with pytest.raises(NotAuthorizedError):
        await build_attendee_service(db, feed, bob).check_in(event.id, alice.user_id)
    with pytest.raises(NotFoundError):
        await build_attendee_service(db, feed, alice).check_in(event.id)

    attendance = await build_attendee_service(db, feed, alice).check_in(event.id, bob.user_id)
    assert attendance.status == "attended"
    assert attendance.joined_at is not None

    [registration] = await build_attendee_service(db, feed, bob).get_user_registrations()
    assert registration.event.title == "Workshop"


async def test_signed_out_event_calls(db, feed):
    service = build_event_service(db, feed, None)
    assert await service.get_events() == []
    with pytest.raises(NotAuthenticatedError):
        await service.create_event(event_data("Nope"))
    assert await build_attendee_service(db, feed, None).get_user_event_status("whatever") is None


async def test_categories_are_active_and_sorted(db, feed):
    repo = EventCategoryRepository(db, feed)
    for name, active in (("Sports", True), ("Archived", False), ("Academic", True)):
        await repo.create_category(name, is_active=active)

    categories = await build_event_service(db, feed, None).get_event_categories()

    assert [c.name for c in categories] == ["Academic", "Sports"]


async def test_event_subscription_reports_change_types(db, feed, make_user, eventually):
    alice = await make_user("Alice Smith")
    service = build_event_service(db, feed, alice)
    seen = []
    sub = await service.subscribe_to_events(lambda change, event_id, event: seen.append((change, event_id)))

    event = await service.create_event(event_data("Live"))
    await service.update_event(event.id, {"title": "Live!"})
    await service._repo.delete_by_id(event.id)

    def check():
        assert seen == [(INSERT, event.id), (UPDATE, event.id), (DELETE, event.id)]

    await eventually(check)
    await sub.unsubscribe()


async def test_event_list_view_applies_pushes(db, feed, make_user, eventually):
    alice = await make_user("Alice Smith")
    service = build_event_service(db, feed, alice)
    first = await service.create_event(event_data("First"))
    view = EventListView(service)
    await view.start()
    assert [e.title for e in view.events] == ["First"]

    second = await service.create_event(event_data("Second"))
    await service.update_event(first.id, {"title": "First (moved)"})

    def check():
        assert [e.title for e in view.events] == ["Second", "First (moved)"]

    await eventually(check)

    await service._repo.delete_by_id(second.id)

    def check_deleted():
        assert [e.id for e in view.events] == [first.id]

    await eventually(check_deleted)

    await view.register(first.id)
    assert view.events[0].registered_count == 1
    await view.close()
