"""
Trip messaging.
"""

import pytest
from datetime import timedelta

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.core.exceptions import ResourceNotFoundError, TripValidationError
from fleet_backend.app.models.trip_enums import SenderType, TripStatus
from fleet_backend.app.models.trip_message import TripMessage
from fleet_backend.app.services.trip_messages import (
    list_messages, mark_messages_read, recent_messages, send_message, unread_driver_message_count
)


async def test_thread_is_oldest_first(db_session, make_trip):
    trip = await make_trip()
    await send_message(db_session, trip.id, SenderType.ADMIN, "Desk", "Pickup moved to 9:15")
    await send_message(db_session, trip.id, SenderType.DRIVER, "John Kamau", "Noted")

    thread = await list_messages(db_session, trip.id)

    assert [m.message for m in thread] == ["Pickup moved to 9:15", "Noted"]
    assert all(not m.is_read for m in thread)


async def test_empty_message_rejected(db_session, make_trip):
    trip = await make_trip()

    with pytest.raises(TripValidationError):
        await send_message(db_session, trip.id, SenderType.ADMIN, "Desk", "   ")


async def test_message_on_unknown_trip(db_session):
    with pytest.raises(ResourceNotFoundError):
        await send_message(db_session, "missing", SenderType.ADMIN, "Desk", "Hello")


async def test_unread_count_only_counts_drivers_on_active_trips(db_session, make_trip):
    active = await make_trip()
    finished = await make_trip(status=TripStatus.COMPLETED)

    await send_message(db_session, active.id, SenderType.DRIVER, "John", "Running late")
    await send_message(db_session, active.id, SenderType.DRIVER, "John", "Five minutes")
    await send_message(db_session, active.id, SenderType.ADMIN, "Desk", "Thanks")
    await send_message(db_session, finished.id, SenderType.DRIVER, "John", "Dropped off")

    assert await unread_driver_message_count(db_session) == 2
    assert await unread_driver_message_count(db_session, trip_ids=[finished.id]) == 1


async def test_mark_read_only_touches_other_party(db_session, make_trip):
    trip = await make_trip()
    trip_id = trip.id
    await send_message(db_session, trip.id, SenderType.DRIVER, "John", "At the gate")
    await send_message(db_session, trip.id, SenderType.ADMIN, "Desk", "Coming")

    changed = await mark_messages_read(db_session, trip.id, SenderType.ADMIN)

    assert changed == 1
    assert await unread_driver_message_count(db_session) == 0
    db_session.expire_all()
    thread = await list_messages(db_session, trip_id)
    assert {m.sender_type: m.is_read for m in thread} == {SenderType.DRIVER: True, SenderType.ADMIN: False}


async def test_recent_messages_newest_first_with_limit(db_session, make_trip):
    trip = await make_trip()
    start = utc_now()
    for i in range(3):
        db_session.add(TripMessage(
            trip_id=trip.id,
            sender_type=SenderType.ADMIN,
            sender_name="Desk",
            message=f"message {i}",
            timestamp=start + timedelta(minutes=i),
        ))
    await db_session.commit()

    recent = await recent_messages(db_session, limit=2)

    assert [m.message for m in recent] == ["message 2", "message 1"]
