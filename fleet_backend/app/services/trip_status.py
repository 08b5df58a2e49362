"""
Trip status transitions.

Lifecycle: scheduled -> in_progress -> completed, with cancellation from
either open state. scheduled -> completed is allowed for trips that are
marked complete after the fact. completed and cancelled are terminal.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.core.exceptions import (
    BackendWriteError, InvalidStatusTransitionError, ResourceNotFoundError
)
from fleet_backend.app.models.activity import ActivityType
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.services.activity_log import log_activity
from fleet_backend.app.services.realtime import ChangeEvent
from fleet_backend.app.services.trip_records import trip_label

logger = logging.getLogger("fleet.trips.status")

ALLOWED_TRANSITIONS = {
    TripStatus.SCHEDULED: frozenset({TripStatus.IN_PROGRESS, TripStatus.CANCELLED, TripStatus.COMPLETED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}


def can_transition(current: TripStatus, new: TripStatus) -> bool:
    return TripStatus(new) in ALLOWED_TRANSITIONS[TripStatus(current)]


def ensure_transition(current: TripStatus, new: TripStatus) -> None:
    """Raises InvalidStatusTransitionError unless current -> new is allowed."""
    if not can_transition(current, new):
        raise InvalidStatusTransitionError(TripStatus(current).value, TripStatus(new).value)


def apply_status(trip: Trip, new_status: TripStatus) -> None:
    """Set status and stamp the actual pickup/dropoff time it implies."""
    new_status = TripStatus(new_status)
    trip.status = new_status

    if new_status == TripStatus.IN_PROGRESS and trip.actual_pickup_at is None:
        trip.actual_pickup_at = utc_now()
    elif new_status == TripStatus.COMPLETED and trip.actual_dropoff_at is None:
        trip.actual_dropoff_at = utc_now()


def status_label(status: TripStatus) -> str:
    """'in_progress' -> 'In progress'."""
    text = TripStatus(status).value.replace("_", " ")
    return text[:1].upper() + text[1:]


async def set_trip_status(
    db: AsyncSession,
    trip_id: str,
    new_status: TripStatus,
    notifier=None,
) -> Trip:
    """
    Manually move a trip to ``new_status``.

    Raises:
        ResourceNotFoundError: unknown trip
        InvalidStatusTransitionError: transition not allowed
        BackendWriteError: the update could not be stored
    """
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)

    previous = TripStatus(trip.status)
    ensure_transition(previous, new_status)
    apply_status(trip, new_status)

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to update status of trip %s", trip_id)
        raise BackendWriteError("Failed to update trip status")

    await db.refresh(trip)
    logger.info("Trip %s status %s -> %s", trip.id, previous.value, trip.status.value)

    await log_activity(
        db,
        title=f"Trip {trip_label(trip)} status changed to {status_label(trip.status)}",
        type=ActivityType.TRIP,
        related_id=trip.id,
    )

    if notifier is not None:
        await notifier.publish("trips", ChangeEvent.UPDATE, [trip.id])

    return trip
