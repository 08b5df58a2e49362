"""
Trip save/update orchestration and trip queries.

``save_trip`` turns booking/edit form input into exactly one of three
outcomes: an update of an existing trip, a batch of recurring trips, or a
single new trip. All rows of one save are committed in one transaction.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, desc, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.exceptions import (
    BackendWriteError, ResourceNotFoundError, TripValidationError
)
from fleet_backend.app.models.activity import ActivityType
from fleet_backend.app.models.fleet import Client, Vehicle, Driver
from fleet_backend.app.models.trip import Trip, new_id
from fleet_backend.app.models.trip_assignment import TripAssignment
from fleet_backend.app.models.trip_message import TripMessage
from fleet_backend.app.models.trip_enums import ClientType, TripStatus
from fleet_backend.app.schemas.trip import DisplayTripResponse, TripFormData
from fleet_backend.app.services.activity_log import log_activity
from fleet_backend.app.services.realtime import ChangeEvent
from fleet_backend.app.services.recurring_trips import expand_recurring_trips
from fleet_backend.app.services.service_type_mapping import (
    is_airport_service,
    map_trip_type_to_db_service_type,
    map_ui_service_type_to_trip_type,
    needs_return_time,
)
from fleet_backend.app.services.trip_assignment import record_assignment
from fleet_backend.app.services.trip_records import to_display_trip, trip_label
from fleet_backend.app.services.trip_status import apply_status, ensure_transition

logger = logging.getLogger("fleet.trips")


class SaveOutcome:
    UPDATED = "updated"
    RECURRING_CREATED = "recurring_created"
    CREATED = "created"


class TripSaveResult:
    """What ``save_trip`` did and which rows it wrote."""

    def __init__(self, outcome: str, trips: List[Trip]):
        self.outcome = outcome
        self.trips = trips

    @property
    def count(self) -> int:
        return len(self.trips)


def validate_trip_form(form: TripFormData, editing: bool = False) -> None:
    """
    Reject incomplete or inconsistent input before anything is written.

    Raises:
        TripValidationError
    """
    if not form.client_id:
        raise TripValidationError("Client is required", field="client_id")
    if form.date is None:
        raise TripValidationError("Trip date is required", field="date")
    if form.time is None:
        raise TripValidationError("Pickup time is required", field="time")
    if form.amount is not None and form.amount < 0:
        raise TripValidationError("Amount cannot be negative", field="amount")

    if form.is_recurring and not editing:
        if form.frequency is None:
            raise TripValidationError("Recurring trips need a frequency", field="frequency")
        if form.occurrences is not None and form.occurrences < 1:
            raise TripValidationError("Number of occurrences must be at least 1", field="occurrences")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_trip_fields(
    form: TripFormData, client_type: Optional[ClientType], editing: bool = False
) -> Dict[str, Any]:
    """
    Map form input to storage columns, applying the field gates:

    - flight metadata and travel documents only for airport services
    - return time only for round trip, security escort and full-day hire
    - passengers only for organization clients

    When editing, amount, passengers and documents left out of the form keep
    their stored value unless a gate clears them.
    """
    trip_type = map_ui_service_type_to_trip_type(form.service_type)
    airport = is_airport_service(form.service_type)

    passengers = None
    if client_type == ClientType.ORGANIZATION and form.passengers:
        passengers = [name.strip() for name in form.passengers if name and name.strip()]

    def documents(items):
        if not airport or not items:
            return None
        return [item.model_dump() for item in items]

    fields = {
        "client_id": form.client_id,
        "vehicle_id": form.vehicle_id or None,
        "driver_id": form.driver_id or None,
        "date": form.date,
        "time": form.time,
        "return_time": form.return_time if needs_return_time(form.service_type) else None,
        "service_type": map_trip_type_to_db_service_type(trip_type),
        "amount": form.amount if form.amount is not None else 0,
        "pickup_location": _clean(form.pickup_location),
        "dropoff_location": _clean(form.dropoff_location),
        "notes": _clean(form.special_notes),
        "airline": _clean(form.airline) if airport else None,
        "flight_number": _clean(form.flight_number) if airport else None,
        "terminal": _clean(form.terminal) if airport else None,
        "passengers": passengers or None,
        "passport_documents": documents(form.passport_documents),
        "invitation_documents": documents(form.invitation_documents),
    }

    if editing:
        if form.amount is None:
            del fields["amount"]
        if form.passengers is None and client_type == ClientType.ORGANIZATION:
            del fields["passengers"]
        if airport:
            for name in ("passport_documents", "invitation_documents"):
                if getattr(form, name) is None:
                    del fields[name]

    return fields


async def _resolve_client_type(db: AsyncSession, form: TripFormData) -> ClientType:
    client = await db.get(Client, form.client_id)
    if client is None:
        raise ResourceNotFoundError("Client", form.client_id)
    return form.client_type or client.type


async def _check_references(db: AsyncSession, form: TripFormData) -> None:
    if form.vehicle_id and await db.get(Vehicle, form.vehicle_id) is None:
        raise ResourceNotFoundError("Vehicle", form.vehicle_id)
    if form.driver_id and await db.get(Driver, form.driver_id) is None:
        raise ResourceNotFoundError("Driver", form.driver_id)


async def _commit(db: AsyncSession, failure_message: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(failure_message)
        raise BackendWriteError(failure_message)


async def _update_trip(db: AsyncSession, trip_id: str, form: TripFormData, fields: Dict[str, Any]) -> Trip:
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)

    status_change = form.status is not None and form.status != trip.status
    if status_change:
        ensure_transition(trip.status, form.status)

    new_driver_id = fields.pop("driver_id")
    for name, value in fields.items():
        setattr(trip, name, value)

    if status_change:
        apply_status(trip, form.status)

    # Driver changes made in the edit form go through the assignment history too
    if new_driver_id and new_driver_id != trip.driver_id:
        record_assignment(db, trip, new_driver_id)
    elif not new_driver_id:
        trip.driver_id = None

    return trip


async def _new_trips(db: AsyncSession, payloads: List[Dict[str, Any]]) -> List[Trip]:
    trips = []
    drivers = []
    for payload in payloads:
        drivers.append(payload.pop("driver_id"))
        trip = Trip(id=new_id(), **payload)
        db.add(trip)
        trips.append(trip)

    # Trips must exist before history rows reference them
    try:
        await db.flush()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to insert %d trip(s)", len(trips))
        raise BackendWriteError("Failed to save trip details")

    for trip, driver_id in zip(trips, drivers):
        if driver_id:
            record_assignment(db, trip, driver_id)
    return trips


async def save_trip(
    db: AsyncSession,
    form: TripFormData,
    editing_trip_id: Optional[str] = None,
    notifier=None,
) -> TripSaveResult:
    """
    Save booking/edit form input.

    Args:
        db: Database session
        form: Submitted form
        editing_trip_id: ID of the trip being edited, None for a new booking
        notifier: ChangeNotifier used to invalidate views after the commit

    Returns:
        TripSaveResult with outcome updated, recurring_created or created

    Raises:
        TripValidationError: invalid input (nothing written)
        ResourceNotFoundError: unknown trip, client, vehicle or driver
        InvalidStatusTransitionError: edit requests a forbidden status change
        BackendWriteError: the store rejected the write (rolled back)
    """
    editing = editing_trip_id is not None
    validate_trip_form(form, editing=editing)

    client_type = await _resolve_client_type(db, form)
    await _check_references(db, form)
    fields = build_trip_fields(form, client_type, editing=editing)

    if editing:
        trip = await _update_trip(db, editing_trip_id, form, fields)
        await _commit(db, "Failed to save trip details")
        result = TripSaveResult(SaveOutcome.UPDATED, [trip])
        title = f"Trip updated: {trip_label(trip)}"
        event = ChangeEvent.UPDATE

    elif form.is_recurring:
        payloads = expand_recurring_trips(
            fields,
            occurrences=form.occurrences if form.occurrences is not None else 1,
            frequency=form.frequency,
        )
        trips = await _new_trips(db, payloads)
        await _commit(db, "Failed to save trip details")
        result = TripSaveResult(SaveOutcome.RECURRING_CREATED, trips)
        title = f"{len(trips)} recurring trips scheduled: {trip_label(trips[0])}"
        event = ChangeEvent.INSERT

    else:
        fields.update(status=TripStatus.SCHEDULED, is_recurring=False)
        trips = await _new_trips(db, [fields])
        await _commit(db, "Failed to save trip details")
        result = TripSaveResult(SaveOutcome.CREATED, trips)
        title = f"New trip booked: {trip_label(trips[0])}"
        event = ChangeEvent.INSERT

    for trip in result.trips:
        await db.refresh(trip)

    logger.info("Trip save %s: %d trip(s)", result.outcome, result.count)

    await log_activity(db, title=title, type=ActivityType.TRIP, related_id=result.trips[0].id)

    if notifier is not None:
        await notifier.publish("trips", event, [trip.id for trip in result.trips])

    return result


async def delete_trip(db: AsyncSession, trip_id: str, notifier=None) -> None:
    """
    Delete a trip together with its assignment history and messages.

    Raises:
        ResourceNotFoundError: unknown trip
        BackendWriteError: the delete could not be stored (rolled back)
    """
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)

    label = trip_label(trip)

    await db.execute(delete(TripAssignment).where(TripAssignment.trip_id == trip_id))
    await db.execute(delete(TripMessage).where(TripMessage.trip_id == trip_id))
    await db.delete(trip)
    await _commit(db, "Failed to delete trip")

    logger.info("Trip %s deleted", trip_id)
    await log_activity(db, title=f"Trip deleted: {label}", type=ActivityType.TRIP, related_id=trip_id)

    if notifier is not None:
        await notifier.publish("trips", ChangeEvent.DELETE, [trip_id])


def _display_query():
    return (
        select(Trip, Client, Vehicle, Driver)
        .outerjoin(Client, Trip.client_id == Client.id)
        .outerjoin(Vehicle, Trip.vehicle_id == Vehicle.id)
        .outerjoin(Driver, Trip.driver_id == Driver.id)
    )


async def get_display_trip(db: AsyncSession, trip_id: str) -> DisplayTripResponse:
    result = await db.execute(_display_query().where(Trip.id == trip_id))
    row = result.first()
    if row is None:
        raise ResourceNotFoundError("Trip", trip_id)
    return to_display_trip(*row)


async def list_display_trips(
    db: AsyncSession,
    status: Optional[TripStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    client_id: Optional[str] = None,
    driver_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    """
    Filtered, paginated display trips, latest date first.

    Returns:
        {"trips": [...], "total": int, "page": int, "page_size": int}
    """
    conditions = []
    if status:
        conditions.append(Trip.status == status)
    if date_from:
        conditions.append(Trip.date >= date_from)
    if date_to:
        conditions.append(Trip.date <= date_to)
    if client_id:
        conditions.append(Trip.client_id == client_id)
    if driver_id:
        conditions.append(Trip.driver_id == driver_id)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Trip.pickup_location.ilike(pattern),
            Trip.dropoff_location.ilike(pattern),
            Client.name.ilike(pattern),
        ))

    count_query = select(func.count(Trip.id)).select_from(Trip).outerjoin(Client, Trip.client_id == Client.id)
    total = (await db.execute(count_query.where(*conditions))).scalar() or 0

    query = (
        _display_query()
        .where(*conditions)
        .order_by(desc(Trip.date), desc(Trip.time))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = (await db.execute(query)).all()

    return {
        "trips": [to_display_trip(*row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
