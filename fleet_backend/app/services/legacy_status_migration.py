"""
One-time migration of the legacy ``STATUS:<value>`` notes prefix.

Older clients kept the trip status at the start of ``notes``. This moves a
valid prefixed status into the ``status`` column and strips the prefix, so
notes only hold notes afterwards. Running it again changes nothing.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.exceptions import BackendWriteError
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.services.trip_records import (
    extract_legacy_status, strip_legacy_status, validate_trip_status
)

logger = logging.getLogger("fleet.migrations.legacy_status")


async def migrate_legacy_statuses(db: AsyncSession) -> int:
    """
    Returns:
        Number of trips rewritten
    """
    result = await db.execute(select(Trip).where(Trip.notes.ilike("STATUS:%")))

    migrated = 0
    for trip in result.scalars().all():
        raw = extract_legacy_status(trip.notes)
        if raw is None:
            continue

        status = validate_trip_status(raw)
        if status is not None:
            trip.status = status
        else:
            logger.warning("Trip %s has unknown legacy status %r; keeping %s", trip.id, raw, trip.status)

        trip.notes = strip_legacy_status(trip.notes)
        migrated += 1

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Legacy status migration failed")
        raise BackendWriteError("Legacy status migration failed")

    logger.info("Migrated legacy status on %d trip(s)", migrated)
    return migrated
