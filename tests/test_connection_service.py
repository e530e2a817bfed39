import pytest

from peerflex.core.errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from peerflex.repositories.notification_repository import NotificationRepository
from peerflex.schemas.connection import ConnectionState
from peerflex.sync.connections import ConnectionStatusTracker, ConnectionsView
from peerflex.utils.dependencies import build_connection_service


@pytest.fixture
async def pair(make_user):
    return await make_user("Alice Smith"), await make_user("Bob Jones")


async def test_request_accept_flow(db, feed, pair):
    alice, bob = pair
    request = await build_connection_service(db, feed, alice).send_request(bob.user_id, "Hi!")
    assert request.status == "pending"
    assert request.from_profile.full_name == "Alice Smith"

    bob_service = build_connection_service(db, feed, bob)
    [pending] = await bob_service.get_pending_requests()
    assert pending.id == request.id

    await bob_service.accept_request(request.id)

    alice_status = await build_connection_service(db, feed, alice).get_connection_status(bob.user_id)
    assert alice_status.state == ConnectionState.CONNECTED
    [connection] = await bob_service.get_connections()
    assert connection.connected_user_id == alice.user_id
    assert connection.connected_user.full_name == "Alice Smith"

    notifications = NotificationRepository(db, feed)
    assert [n["type"] for n in await notifications.list_for_user(bob.user_id)] == ["friend_request"]
    assert [n["type"] for n in await notifications.list_for_user(alice.user_id)] == ["connection_accepted"]


async def test_send_request_guards(db, feed, pair):
    alice, bob = pair
    service = build_connection_service(db, feed, alice)

    with pytest.raises(ValidationError):
        await service.send_request(alice.user_id)
    with pytest.raises(NotFoundError):
        await service.send_request("64b7f0c2a1b2c3d4e5f60718")

    await service.send_request(bob.user_id)
    with pytest.raises(DuplicateRequestError):
        await service.send_request(bob.user_id)
    with pytest.raises(DuplicateRequestError):
        await build_connection_service(db, feed, bob).send_request(alice.user_id)


async def test_only_recipient_accepts_and_only_sender_withdraws(db, feed, pair):
    alice, bob = pair
    alice_service = build_connection_service(db, feed, alice)
    bob_service = build_connection_service(db, feed, bob)
    request = await alice_service.send_request(bob.user_id)

    with pytest.raises(NotAuthorizedError):
        await alice_service.accept_request(request.id)
    with pytest.raises(NotAuthorizedError):
        await bob_service.withdraw_request(request.id)

    await alice_service.withdraw_request(request.id)
    assert (await bob_service.get_connection_status(alice.user_id)).state == ConnectionState.NOT_CONNECTED


async def test_remove_connection(db, feed, pair):
    alice, bob = pair
    request = await build_connection_service(db, feed, alice).send_request(bob.user_id)
    await build_connection_service(db, feed, bob).accept_request(request.id)

    service = build_connection_service(db, feed, alice)
    await service.remove_connection(bob.user_id)

    assert await service.get_connections() == []
    with pytest.raises(NotFoundError):
        await service.remove_connection(bob.user_id)


async def test_tracker_walks_the_state_machine(db, feed, pair):
    alice, bob = pair
    alice_tracker = ConnectionStatusTracker(build_connection_service(db, feed, alice), bob.user_id)
    bob_tracker = ConnectionStatusTracker(build_connection_service(db, feed, bob), alice.user_id)
    await alice_tracker.refresh()
    assert alice_tracker.state == ConnectionState.NOT_CONNECTED

    await alice_tracker.send_request()
    assert alice_tracker.state == ConnectionState.PENDING and alice_tracker.sent_by_me

    await bob_tracker.refresh()
    assert bob_tracker.sent_by_them
    await bob_tracker.reject_request()
    assert bob_tracker.state == ConnectionState.NOT_CONNECTED

    await alice_tracker.refresh()
    await alice_tracker.send_request()
    await bob_tracker.refresh()
    await bob_tracker.accept_request()
    assert bob_tracker.state == ConnectionState.CONNECTED

    await alice_tracker.refresh()
    await alice_tracker.remove_connection()
    assert alice_tracker.state == ConnectionState.NOT_CONNECTED


async def test_tracker_rejects_invalid_transitions_without_touching_store(db, feed, pair):
    alice, bob = pair
    tracker = ConnectionStatusTracker(build_connection_service(db, feed, alice), bob.user_id)
    await tracker.refresh()

    with pytest.raises(InvalidTransitionError):
        await tracker.accept_request()
    with pytest.raises(InvalidTransitionError):
        await tracker.withdraw_request()
    with pytest.raises(InvalidTransitionError):
        await tracker.remove_connection()

    await tracker.send_request()
    with pytest.raises(InvalidTransitionError):
        await tracker.accept_request()
    with pytest.raises(InvalidTransitionError):
        await tracker.send_request()

    assert len(await db["connection_requests"].find({}).to_list(length=None)) == 1


async def test_tracker_refreshes_after_failed_mutation(db, feed, pair):
    alice, bob = pair
    alice_tracker = ConnectionStatusTracker(build_connection_service(db, feed, alice), bob.user_id)
    await alice_tracker.refresh()
    # bob sends first, so alice's cached "not connected" is stale
    await build_connection_service(db, feed, bob).send_request(alice.user_id)

    with pytest.raises(DuplicateRequestError):
        await alice_tracker.send_request()

    assert alice_tracker.sent_by_them


async def test_connections_view(db, feed, pair):
    alice, bob = pair
    await build_connection_service(db, feed, alice).send_request(bob.user_id)
    view = ConnectionsView(build_connection_service(db, feed, bob))
    await view.load()
    assert view.loading is False
    [request] = view.pending_requests

    assert await view.accept_request(request.id) is True
    assert view.pending_requests == []
    assert [c.connected_user_id for c in view.connections] == [alice.user_id]

    assert await view.accept_request(request.id) is False
    assert view.error == "Connection request is no longer pending"

    status = await view.get_connection_status("not-an-id")
    assert status.state == ConnectionState.NOT_CONNECTED
