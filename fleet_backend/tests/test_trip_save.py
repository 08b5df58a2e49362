"""
Trip save orchestrator: create, recurring create, update, delete, listing.
"""

import pytest
from datetime import date, time
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.core.exceptions import (
    BackendWriteError, InvalidStatusTransitionError, ResourceNotFoundError, TripValidationError
)
from fleet_backend.app.models.activity import Activity
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_assignment import TripAssignment
from fleet_backend.app.models.trip_message import TripMessage
from fleet_backend.app.models.trip_enums import DbServiceType, SenderType, TripStatus
from fleet_backend.app.schemas.trip import TripDocument, TripFormData
from fleet_backend.app.services.realtime import ChangeNotifier
from fleet_backend.app.services.trip_service import (
    SaveOutcome, delete_trip, get_display_trip, list_display_trips, save_trip
)


def form_for(client, **overrides) -> TripFormData:
    data = {
        "client_id": client.id,
        "date": date(2024, 1, 1),
        "time": time(9, 0),
        "service_type": "one_way",
        "pickup_location": "JKIA",
        "dropoff_location": "Westlands",
        "amount": 50,
    }
    data.update(overrides)
    return TripFormData(**data)


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


async def test_single_create_maps_hourly_to_one_way_transfer(db_session, org_client):
    result = await save_trip(db_session, form_for(org_client, service_type="hourly"))

    assert result.outcome == SaveOutcome.CREATED
    assert result.count == 1
    trip = result.trips[0]
    assert trip.service_type == DbServiceType.ONE_WAY_TRANSFER
    assert trip.status == TripStatus.SCHEDULED
    assert trip.is_recurring is False
    assert trip.amount == 50


async def test_weekly_recurring_create(db_session, org_client, session_factory):
    form = form_for(org_client, is_recurring=True, occurrences=3, frequency="weekly")

    result = await save_trip(db_session, form)

    assert result.outcome == SaveOutcome.RECURRING_CREATED
    assert sorted(t.date for t in result.trips) == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]
    assert all(t.is_recurring and t.status == TripStatus.SCHEDULED for t in result.trips)
    assert await count_rows(session_factory, Trip) == 3


async def test_recurring_with_driver_records_assignment_per_trip(db_session, org_client, driver, session_factory):
    form = form_for(org_client, driver_id=driver.id, is_recurring=True, occurrences=2, frequency="daily")

    result = await save_trip(db_session, form)

    assert all(t.driver_id == driver.id for t in result.trips)
    assert await count_rows(session_factory, TripAssignment) == 2


async def test_recurring_without_frequency_is_rejected(db_session, org_client, session_factory):
    with pytest.raises(TripValidationError):
        await save_trip(db_session, form_for(org_client, is_recurring=True, occurrences=3))
    assert await count_rows(session_factory, Trip) == 0


async def test_missing_required_fields_rejected(db_session, org_client):
    with pytest.raises(TripValidationError):
        await save_trip(db_session, TripFormData(client_id=org_client.id, time=time(9, 0)))
    with pytest.raises(TripValidationError):
        await save_trip(db_session, form_for(org_client, amount=-1))


async def test_unknown_client_is_not_found(db_session, org_client):
    with pytest.raises(ResourceNotFoundError):
        await save_trip(db_session, form_for(org_client, client_id="missing"))


async def test_flight_fields_and_documents_only_for_airport_trips(db_session, org_client):
    doc = TripDocument(name="passport.pdf", url="https://files.test/p.pdf", passenger_name="A. Guest")
    airport = await save_trip(db_session, form_for(
        org_client, service_type="airport_pickup", airline="Kenya Airways",
        flight_number="KQ100", terminal="1A", passport_documents=[doc],
    ))
    transfer = await save_trip(db_session, form_for(
        org_client, service_type="one_way", airline="Kenya Airways",
        flight_number="KQ100", passport_documents=[doc],
    ))

    assert airport.trips[0].flight_number == "KQ100"
    assert airport.trips[0].passport_documents[0]["passenger_name"] == "A. Guest"
    assert transfer.trips[0].airline is None
    assert transfer.trips[0].flight_number is None
    assert transfer.trips[0].passport_documents is None


async def test_return_time_only_for_return_services(db_session, org_client):
    round_trip = await save_trip(db_session, form_for(org_client, service_type="round_trip", return_time=time(17, 0)))
    one_way = await save_trip(db_session, form_for(org_client, service_type="one_way", return_time=time(17, 0)))

    assert round_trip.trips[0].return_time == time(17, 0)
    assert one_way.trips[0].return_time is None


async def test_passengers_only_for_organization_clients(db_session, org_client, individual_client):
    org = await save_trip(db_session, form_for(org_client, passengers=["A. Guest", " ", "B. Guest"]))
    person = await save_trip(db_session, form_for(individual_client, passengers=["A. Guest"]))

    assert org.trips[0].passengers == ["A. Guest", "B. Guest"]
    assert person.trips[0].passengers is None


async def test_create_logs_activity_and_publishes_change(db_session, org_client, mock_redis, session_factory):
    notifier = ChangeNotifier(mock_redis)

    result = await save_trip(db_session, form_for(org_client), notifier=notifier)

    events = mock_redis.published_events("trips")
    assert events[-1]["event"] == "INSERT"
    assert events[-1]["record_ids"] == [result.trips[0].id]
    assert mock_redis.store["cache:version:trips"] == "1"

    async with session_factory() as session:
        titles = (await session.execute(select(Activity.title))).scalars().all()
    assert titles == ["New trip booked: JKIA to Westlands"]


async def test_update_applies_gates_and_keeps_id(db_session, org_client, make_trip):
    trip = await make_trip(airline="Old Air", flight_number="OA1")

    result = await save_trip(
        db_session,
        form_for(org_client, service_type="security_escort", return_time=time(18, 0), special_notes="VIP"),
        editing_trip_id=trip.id,
    )

    assert result.outcome == SaveOutcome.UPDATED
    updated = result.trips[0]
    assert updated.id == trip.id
    assert updated.service_type == DbServiceType.SECURITY_ESCORT
    assert updated.return_time == time(18, 0)
    assert updated.airline is None
    assert updated.notes == "VIP"


async def test_update_keeps_fields_left_out_of_the_form(db_session, org_client, make_trip, session_factory):
    passport = {"name": "p.pdf", "url": "https://files.test/p.pdf", "passenger_name": None}
    trip = await make_trip(
        service_type=DbServiceType.AIRPORT_PICKUP,
        amount=250,
        passengers=["A. Guest"],
        passport_documents=[passport],
    )

    await save_trip(
        db_session,
        form_for(org_client, service_type="airport_pickup", amount=None, special_notes="gate 3"),
        editing_trip_id=trip.id,
    )

    async with session_factory() as session:
        stored = await session.get(Trip, trip.id)
    assert stored.notes == "gate 3"
    assert stored.amount == 250
    assert stored.passengers == ["A. Guest"]
    assert stored.passport_documents == [passport]


async def test_update_clears_documents_when_no_longer_airport(db_session, org_client, make_trip, session_factory):
    trip = await make_trip(
        service_type=DbServiceType.AIRPORT_PICKUP,
        passport_documents=[{"name": "p.pdf", "url": "https://files.test/p.pdf", "passenger_name": None}],
    )

    await save_trip(db_session, form_for(org_client, service_type="one_way"), editing_trip_id=trip.id)

    async with session_factory() as session:
        assert (await session.get(Trip, trip.id)).passport_documents is None


async def test_update_missing_trip_is_not_found(db_session, org_client):
    with pytest.raises(ResourceNotFoundError):
        await save_trip(db_session, form_for(org_client), editing_trip_id="does-not-exist")


async def test_update_rejects_leaving_terminal_status(db_session, org_client, make_trip):
    trip = await make_trip(status=TripStatus.COMPLETED)

    with pytest.raises(InvalidStatusTransitionError):
        await save_trip(db_session, form_for(org_client, status="scheduled"), editing_trip_id=trip.id)


async def test_update_driver_change_is_recorded(db_session, org_client, driver, other_driver, make_trip, session_factory):
    trip = await make_trip(driver_id=driver.id)

    await save_trip(db_session, form_for(org_client, driver_id=other_driver.id), editing_trip_id=trip.id)

    async with session_factory() as session:
        stored = await session.get(Trip, trip.id)
        history = (await session.execute(select(TripAssignment))).scalars().all()
    assert stored.driver_id == other_driver.id
    assert [a.driver_id for a in history] == [other_driver.id]


async def test_failed_commit_rolls_back_whole_batch(db_session, org_client, mocker, session_factory):
    mocker.patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk full"))

    form = form_for(org_client, is_recurring=True, occurrences=4, frequency="daily")
    with pytest.raises(BackendWriteError) as exc:
        await save_trip(db_session, form)

    assert exc.value.message == "Failed to save trip details"
    assert await count_rows(session_factory, Trip) == 0


async def test_delete_removes_dependent_rows(db_session, driver, make_trip, session_factory):
    trip = await make_trip(driver_id=driver.id)
    db_session.add(TripAssignment(trip_id=trip.id, driver_id=driver.id, assigned_at=utc_now()))
    db_session.add(TripMessage(
        trip_id=trip.id, sender_type=SenderType.ADMIN, sender_name="Desk", message="Hi", timestamp=utc_now()
    ))
    await db_session.commit()

    await delete_trip(db_session, trip.id)

    assert await count_rows(session_factory, Trip) == 0
    assert await count_rows(session_factory, TripAssignment) == 0
    assert await count_rows(session_factory, TripMessage) == 0


async def test_display_trip_joins_reference_data(db_session, vehicle, driver, make_trip):
    trip = await make_trip(vehicle_id=vehicle.id, driver_id=driver.id, service_type=DbServiceType.AIRPORT_PICKUP,
                           flight_number="KQ100", airline="Kenya Airways")

    display = await get_display_trip(db_session, trip.id)

    assert display.client_name == "Acme Corp"
    assert display.vehicle_details == "Toyota Land Cruiser (KDA 123A)"
    assert display.driver_name == "John Kamau"
    assert display.display_type == "Airport Pickup"
    assert display.flight_info == "KQ100, Kenya Airways"


async def test_display_trip_placeholders(db_session, make_trip):
    trip = await make_trip()

    display = await get_display_trip(db_session, trip.id)

    assert display.vehicle_details == "No Vehicle"
    assert display.driver_name == "No Driver"


async def test_list_filters_and_orders_latest_first(db_session, make_trip):
    await make_trip(date=date(2024, 1, 1))
    await make_trip(date=date(2024, 1, 5), status=TripStatus.COMPLETED)
    await make_trip(date=date(2024, 1, 3), pickup_location="Karen")

    everything = await list_display_trips(db_session)
    assert [t.date for t in everything["trips"]] == [date(2024, 1, 5), date(2024, 1, 3), date(2024, 1, 1)]
    assert everything["total"] == 3

    scheduled = await list_display_trips(db_session, status=TripStatus.SCHEDULED)
    assert scheduled["total"] == 2

    searched = await list_display_trips(db_session, search="karen")
    assert [t.pickup_location for t in searched["trips"]] == ["Karen"]

    paged = await list_display_trips(db_session, page=2, page_size=2)
    assert len(paged["trips"]) == 1
