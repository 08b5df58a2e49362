"""
Driver and vehicle assignment workflow.

Assigning a driver writes a TripAssignment history row and moves the trip's
``driver_id`` pointer in the same transaction, so the pointer always names
the driver of the latest assignment. History is never overwritten.
Vehicle reassignment only moves the trip's ``vehicle_id``; it keeps no history.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.core.exceptions import (
    BackendWriteError, InsufficientPermissionsError, ResourceNotFoundError, TripValidationError
)
from fleet_backend.app.models.activity import ActivityType
from fleet_backend.app.models.fleet import Driver, Vehicle
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_assignment import TripAssignment
from fleet_backend.app.models.trip_enums import AssignmentStatus, TripStatus, TERMINAL_STATUSES
from fleet_backend.app.schemas.trip_assignment import TripAssignmentResponse
from fleet_backend.app.services.activity_log import log_activity
from fleet_backend.app.services.realtime import ChangeEvent
from fleet_backend.app.services.trip_records import trip_label

logger = logging.getLogger("fleet.trips.assignment")


def record_assignment(
    db: AsyncSession,
    trip: Trip,
    driver_id: str,
    note: Optional[str] = None,
) -> TripAssignment:
    """
    Stage a pending assignment and point the trip at the driver.

    Nothing is committed; the caller owns the transaction.
    """
    assignment = TripAssignment(
        trip_id=trip.id,
        driver_id=driver_id,
        assigned_at=utc_now(),
        status=AssignmentStatus.PENDING,
        notes=note or None,
    )
    db.add(assignment)
    trip.driver_id = driver_id
    return assignment


async def assign_driver(
    db: AsyncSession,
    trip_id: str,
    driver_id: str,
    note: Optional[str] = None,
    notifier=None,
) -> Tuple[Trip, TripAssignment]:
    """
    Assign ``driver_id`` to a trip.

    Steps:
    1. Insert a pending TripAssignment
    2. Update the trip's driver pointer
    (1 and 2 commit together or not at all)
    3. Log an activity entry (best effort)

    Raises:
        ResourceNotFoundError: unknown trip or driver
        TripValidationError: the trip is completed or cancelled
        BackendWriteError: the writes could not be stored
    """
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)

    if TripStatus(trip.status) in TERMINAL_STATUSES:
        raise TripValidationError(
            f"Cannot assign a driver to a {TripStatus(trip.status).value} trip", field="trip_id"
        )

    driver = await db.get(Driver, driver_id)
    if driver is None:
        raise ResourceNotFoundError("Driver", driver_id)

    previous_driver_id = trip.driver_id
    assignment = record_assignment(db, trip, driver.id, note)

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to assign driver %s to trip %s", driver_id, trip_id)
        raise BackendWriteError("Failed to assign driver")

    await db.refresh(assignment)
    await db.refresh(trip)
    logger.info(
        "Driver %s assigned to trip %s (previous driver: %s)", driver.id, trip.id, previous_driver_id
    )

    await log_activity(
        db,
        title=f"Driver {driver.name} assigned to trip {trip_label(trip)}",
        type=ActivityType.TRIP,
        related_id=trip.id,
    )

    if notifier is not None:
        await notifier.publish("trip_assignments", ChangeEvent.INSERT, [assignment.id])
        await notifier.publish("trips", ChangeEvent.UPDATE, [trip.id])

    return trip, assignment


async def assign_vehicle(
    db: AsyncSession,
    trip_id: str,
    vehicle_id: str,
    notifier=None,
) -> Trip:
    """
    Reassign the vehicle of a trip.

    Raises:
        ResourceNotFoundError: unknown trip or vehicle
        TripValidationError: the trip is completed or cancelled
        BackendWriteError: the update could not be stored
    """
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)

    if TripStatus(trip.status) in TERMINAL_STATUSES:
        raise TripValidationError(
            f"Cannot reassign the vehicle of a {TripStatus(trip.status).value} trip", field="trip_id"
        )

    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    previous_vehicle_id = trip.vehicle_id
    trip.vehicle_id = vehicle.id

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to assign vehicle %s to trip %s", vehicle_id, trip_id)
        raise BackendWriteError("Failed to reassign vehicle")

    await db.refresh(trip)
    logger.info(
        "Vehicle %s assigned to trip %s (previous vehicle: %s)", vehicle.id, trip.id, previous_vehicle_id
    )

    await log_activity(
        db,
        title=f"Vehicle {vehicle.details} assigned to trip {trip_label(trip)}",
        type=ActivityType.TRIP,
        related_id=trip.id,
    )

    if notifier is not None:
        await notifier.publish("trips", ChangeEvent.UPDATE, [trip.id])

    return trip


async def list_assignments(db: AsyncSession, trip_id: str) -> List[TripAssignmentResponse]:
    """Assignment history for a trip, newest first, with driver name and avatar."""
    result = await db.execute(
        select(TripAssignment, Driver)
        .outerjoin(Driver, TripAssignment.driver_id == Driver.id)
        .where(TripAssignment.trip_id == trip_id)
        .order_by(desc(TripAssignment.assigned_at))
    )

    history = []
    for assignment, driver in result.all():
        item = TripAssignmentResponse.model_validate(assignment)
        if driver is not None:
            item.driver_name = driver.name
            item.driver_avatar = driver.avatar_url
        history.append(item)
    return history


async def respond_to_assignment(
    db: AsyncSession,
    assignment_id: str,
    status: AssignmentStatus,
    driver_id: str,
    notifier=None,
) -> TripAssignment:
    """
    Record the assigned driver's answer to a pending assignment.

    Raises:
        ResourceNotFoundError: unknown assignment
        InsufficientPermissionsError: the assignment belongs to another driver
        TripValidationError: already answered, or status is not accepted/rejected
    """
    status = AssignmentStatus(status)
    if status == AssignmentStatus.PENDING:
        raise TripValidationError("An assignment can only be accepted or rejected", field="status")

    assignment = await db.get(TripAssignment, assignment_id)
    if assignment is None:
        raise ResourceNotFoundError("Trip assignment", assignment_id)

    if assignment.driver_id != driver_id:
        raise InsufficientPermissionsError("This assignment belongs to another driver")

    if assignment.status != AssignmentStatus.PENDING:
        raise TripValidationError(
            f"Assignment was already {assignment.status.value}", field="status"
        )

    assignment.status = status
    assignment.responded_at = utc_now()

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to record response to assignment %s", assignment_id)
        raise BackendWriteError("Failed to update assignment")

    await db.refresh(assignment)

    driver = await db.get(Driver, driver_id)
    await log_activity(
        db,
        title=f"Driver {driver.name if driver else driver_id} {status.value} trip #{assignment.trip_id[:8]}",
        type=ActivityType.DRIVER,
        related_id=assignment.trip_id,
    )

    if notifier is not None:
        await notifier.publish("trip_assignments", ChangeEvent.UPDATE, [assignment.id])

    return assignment
