"""
Activity logging service.

Appends human-readable entries to the dashboard activity feed. Entries are
a side effect of trip, assignment and status operations and are written
after the primary change has been committed.
"""

import logging
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.models.activity import Activity, ActivityType

logger = logging.getLogger("fleet.activity")


async def log_activity(
    db: AsyncSession,
    title: str,
    type: str = ActivityType.TRIP,
    related_id: Optional[str] = None,
) -> Optional[Activity]:
    """
    Append an activity entry.

    Args:
        db: Database session (the primary write must already be committed)
        title: Human-readable description
        type: One of the ActivityType tags
        related_id: ID of the entity the entry is about

    Returns:
        The stored Activity, or None if the write failed. Failures are
        logged and never propagate to the caller.
    """
    activity = Activity(
        title=title,
        type=type,
        related_id=related_id,
        timestamp=utc_now(),
    )

    try:
        db.add(activity)
        await db.commit()
        await db.refresh(activity)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to log activity %r", title)
        return None

    logger.info("Activity logged: %s", title, extra={"type": type, "related_id": related_id})
    return activity


async def get_activities(
    db: AsyncSession,
    limit: int = 20,
    type: Optional[str] = None,
) -> List[Activity]:
    """Most recent activities first."""
    query = select(Activity).order_by(desc(Activity.timestamp), desc(Activity.id))

    if type:
        query = query.where(Activity.type == type)

    result = await db.execute(query.limit(limit))
    return result.scalars().all()
