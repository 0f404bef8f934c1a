import asyncio

import pytest

from clinic_queue_client import AuthState, MutationInProgress, ServiceError, Unauthorized
from helpers import always, eventually


@pytest.fixture
async def desk(logged_in):
    controller = logged_in.admin(always(True))
    yield controller
    await controller.aclose()


async def test_listing_is_polled_in_booking_order(desk, service):
    alice, bob = service.add("Alice"), service.add("Bob")

    async with desk:
        await eventually(lambda: desk.poller.fetch_count >= 1)
        assert [e.patient_name for e in desk.queue] == ["Alice", "Bob"]
        assert desk.current.internal_id == alice.internal_id

        service.add("Carol")
        await eventually(lambda: len(desk.queue) == 3)
    assert not desk.poller.running


async def test_mark_done_removes_record_before_next_poll(desk, service):
    alice, bob = service.add("Alice"), service.add("Bob")
    await desk.refresh()
    polls = service.count("admin_queue")

    assert await desk.mark_done(alice.internal_id, "Alice")

    assert [e.internal_id for e in desk.queue] == [bob.internal_id]
    assert desk.message == "Patient Alice marked as done."
    assert desk.processing_id is None
    assert alice.status == "Done"
    assert service.count("admin_queue") == polls


async def test_mark_done_asks_for_confirmation(logged_in, service):
    confirm = always(False)
    desk = logged_in.admin(confirm)
    alice = service.add("Alice")
    await desk.refresh()

    assert await desk.mark_done(alice.internal_id, "Alice") is False

    assert confirm.prompts == ['Mark patient "Alice" as done?']
    assert service.count("done") == 0
    assert len(desk.queue) == 1


async def test_only_one_mark_done_in_flight(desk, service):
    alice, bob = service.add("Alice"), service.add("Bob")
    await desk.refresh()
    held = service.gate("done", alice.internal_id)

    pending = asyncio.ensure_future(desk.mark_done(alice.internal_id, "Alice"))
    await eventually(lambda: service.count("done") == 1)

    assert desk.processing_id == alice.internal_id
    assert not desk.can_mark_done(bob.internal_id)
    with pytest.raises(MutationInProgress) as excinfo:
        await desk.mark_done(bob.internal_id, "Bob")
    assert excinfo.value.internal_id == alice.internal_id
    assert service.count("done") == 1

    held.set()
    assert await pending
    assert desk.can_mark_done(bob.internal_id)
    assert await desk.mark_done(bob.internal_id, "Bob")
    assert desk.queue == []


async def test_failed_mark_done_releases_lock_and_keeps_listing(desk, service):
    alice = service.add("Alice")
    await desk.refresh()
    service.fail_next("done", 500, "Database unavailable")

    assert await desk.mark_done(alice.internal_id, "Alice") is False

    assert desk.error == "Database unavailable"
    assert isinstance(desk.last_error, ServiceError)
    assert desk.processing_id is None
    assert [e.internal_id for e in desk.queue] == [alice.internal_id]


async def test_expired_session_on_mark_done_forces_logout(desk, logged_in, service):
    alice = service.add("Alice")
    desk.start()
    await eventually(lambda: desk.poller.fetch_count >= 1)
    service.sessions.clear()

    assert await desk.mark_done(alice.internal_id, "Alice") is False

    assert isinstance(desk.last_error, Unauthorized)
    assert logged_in.session.state is AuthState.unauthenticated
    assert desk.processing_id is None
    assert not desk.poller.running


async def test_unauthorized_listing_logs_out_and_stops_polling(desk, logged_in, service, config):
    service.add("Alice")
    service.sessions.clear()

    desk.start()
    await eventually(lambda: logged_in.session.state is AuthState.unauthenticated)
    await eventually(lambda: not desk.poller.running)
    polls = service.count("admin_queue")
    await asyncio.sleep(config.admin_poll_seconds * 3)

    assert service.count("admin_queue") == polls == 1
    assert isinstance(desk.poller.last_error, Unauthorized)
    assert desk.queue == []


async def test_in_flight_listing_cannot_bring_back_removed_record(desk, service):
    alice, bob = service.add("Alice"), service.add("Bob")
    await desk.refresh()

    # A background refresh captures the listing while Alice is still waiting
    held = service.gate("admin_queue")
    stale = asyncio.ensure_future(desk.poller.refresh(foreground=False))
    await eventually(lambda: service.count("admin_queue") == 2)

    assert await desk.mark_done(alice.internal_id, "Alice")
    held.set()
    await stale

    assert [e.internal_id for e in desk.queue] == [bob.internal_id]

    # The next listing requested after the removal is authoritative
    service.gates.clear()
    alice.status = "Waiting"
    await desk.refresh()
    assert [e.internal_id for e in desk.queue] == [alice.internal_id, bob.internal_id]


async def test_background_failure_keeps_listing(desk, service):
    service.add("Alice")
    await desk.refresh()
    service.fail_next("admin_queue", 502)

    await desk.poller.refresh(foreground=False)

    assert len(desk.queue) == 1
    assert desk.listing_error == "Failed to fetch admin queue."
    assert desk.is_loading is False


async def test_logout_stops_polling(desk, logged_in, service):
    desk.start()
    await eventually(lambda: desk.poller.fetch_count >= 1)

    await desk.logout()

    assert logged_in.session.state is AuthState.unauthenticated
    assert not desk.poller.running
    assert service.sessions == set()


async def test_refresh_after_removal_does_not_release_older_listing(desk, service):
    alice, bob = service.add("Alice"), service.add("Bob")
    await desk.refresh()

    # The timer's listing is taken while Alice is still waiting and held open
    held = service.gate("admin_queue")
    timer_tick = asyncio.ensure_future(desk.poller.refresh(foreground=False))
    await eventually(lambda: service.count("admin_queue") == 2)
    service.gates.clear()

    assert await desk.mark_done(alice.internal_id, "Alice")
    await desk.refresh()
    assert [e.internal_id for e in desk.queue] == [bob.internal_id]

    held.set()
    await timer_tick

    assert [e.internal_id for e in desk.queue] == [bob.internal_id]
