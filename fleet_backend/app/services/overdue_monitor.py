"""
Overdue trip sweep.

A scheduled trip whose pickup date/time has passed without anyone starting
it is cancelled automatically, annotated and reported as a high-priority
alert. The cancel is a conditional update on ``status = scheduled``, so a
trip started meanwhile, or already cancelled by another sweeping process,
is left alone and gets no second alert.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import select, update, case, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import local_now
from fleet_backend.app.core.config import settings
from fleet_backend.app.models.alert import AlertPriority, AlertType
from fleet_backend.app.models.fleet import Client
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.services.alert_service import AlertService
from fleet_backend.app.services.realtime import ChangeEvent

logger = logging.getLogger("fleet.trips.overdue")

OVERDUE_NOTE = "Automatically marked as missed - trip was overdue."


def is_overdue(trip: Trip, now: datetime, grace: timedelta = timedelta(0)) -> bool:
    """True for a scheduled trip whose pickup time (plus grace) is strictly past."""
    if TripStatus(trip.status) != TripStatus.SCHEDULED:
        return False
    if trip.date is None or trip.time is None:
        return False
    return datetime.combine(trip.date, trip.time) + grace < now


def _overdue_notes_expression():
    """Stored notes with the overdue note appended after a blank line."""
    return case(
        (or_(Trip.notes.is_(None), Trip.notes == ""), OVERDUE_NOTE),
        else_=Trip.notes + "\n\n" + OVERDUE_NOTE,
    )


def overdue_alert_description(trip: Trip) -> str:
    return (
        f"Trip scheduled for {trip.date.isoformat()} at {trip.time.strftime('%H:%M')} "
        f"was not started and has been marked as missed. "
        f"Pickup: {trip.pickup_location or 'Not specified'}, "
        f"Dropoff: {trip.dropoff_location or 'Not specified'}"
    )


async def find_overdue_candidates(db: AsyncSession, now: datetime, grace: timedelta) -> List[Trip]:
    cutoff = now - grace
    result = await db.execute(
        select(Trip).where(
            Trip.status == TripStatus.SCHEDULED,
            or_(
                Trip.date < cutoff.date(),
                and_(Trip.date == cutoff.date(), Trip.time < cutoff.time()),
            ),
        ).order_by(Trip.date, Trip.time)
    )
    # Re-check in Python; the SQL filter only narrows the scan
    return [trip for trip in result.scalars().all() if is_overdue(trip, now, grace)]


async def sweep_overdue_trips(
    db: AsyncSession,
    now: Optional[datetime] = None,
    notifier=None,
) -> List[str]:
    """
    Cancel every overdue scheduled trip.

    Each trip is cancelled together with its alert in its own transaction;
    a failure is logged and the sweep moves on to the next trip.

    Args:
        db: Database session
        now: Naive local time to compare against (defaults to the current time)
        notifier: ChangeNotifier for cache invalidation

    Returns:
        IDs of the trips cancelled by this run
    """
    now = now or local_now()
    grace = timedelta(minutes=settings.overdue_grace_minutes)

    candidate_ids = [trip.id for trip in await find_overdue_candidates(db, now, grace)]

    cancelled = []
    for trip_id in candidate_ids:
        # Re-read the row; another writer may have started the trip since the scan
        trip = await db.get(Trip, trip_id, populate_existing=True)
        if trip is None or not is_overdue(trip, now, grace):
            continue

        client = await db.get(Client, trip.client_id)
        client_name = client.name if client else "Unknown Client"

        try:
            result = await db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status == TripStatus.SCHEDULED)
                .values(status=TripStatus.CANCELLED, notes=_overdue_notes_expression())
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount != 1:
                await db.rollback()
                logger.info("Trip %s changed during the sweep, skipped", trip_id)
                continue

            await AlertService.create_alert(
                db,
                title=f"Missed trip - {client_name}",
                type=AlertType.TRIP,
                priority=AlertPriority.HIGH,
                description=overdue_alert_description(trip),
                related_id=trip.id,
                related_type="trip",
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Failed to cancel overdue trip %s", trip_id)
            continue

        logger.warning("Trip %s marked as missed (scheduled %s %s)", trip.id, trip.date, trip.time)
        cancelled.append(trip_id)

    if cancelled and notifier is not None:
        await notifier.publish("trips", ChangeEvent.UPDATE, cancelled)
        await notifier.publish("alerts", ChangeEvent.INSERT, [])

    logger.info("Overdue sweep at %s cancelled %d trip(s)", now.isoformat(timespec="minutes"), len(cancelled))
    return cancelled


class OverdueMonitor:
    """
    Periodic overdue sweep as a background task.

    Runs once on start, then every ``interval_seconds``. Each run gets a
    fresh session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: Callable,
        notifier_factory: Optional[Callable] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.notifier_factory = notifier_factory
        self.interval_seconds = interval_seconds or settings.overdue_sweep_interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: Optional[datetime] = None) -> List[str]:
        notifier = self.notifier_factory() if self.notifier_factory else None
        async with self.session_factory() as db:
            return await sweep_overdue_trips(db, now=now, notifier=notifier)

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep the schedule alive; the next run retries
                logger.exception("Overdue sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting overdue monitor (every %ss)", self.interval_seconds)
        self._task = asyncio.create_task(self._loop(), name="overdue-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
