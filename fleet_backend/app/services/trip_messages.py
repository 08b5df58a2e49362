"""
Trip messaging.

Each trip has an append-only thread between the back office and the
driver. Messages cannot be edited or deleted.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update, func, desc, asc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.exceptions import (
    BackendWriteError, ResourceNotFoundError, TripValidationError
)
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_message import TripMessage
from fleet_backend.app.models.trip_enums import SenderType, ACTIVE_STATUSES
from fleet_backend.app.services.realtime import ChangeEvent

logger = logging.getLogger("fleet.trips.messages")


async def send_message(
    db: AsyncSession,
    trip_id: str,
    sender_type: SenderType,
    sender_name: str,
    text: str,
    notifier=None,
) -> TripMessage:
    """
    Append a message to a trip's thread.

    Raises:
        TripValidationError: empty message
        ResourceNotFoundError: unknown trip
        BackendWriteError: the message could not be stored
    """
    text = (text or "").strip()
    if not text:
        raise TripValidationError("Message cannot be empty", field="message")

    if await db.get(Trip, trip_id) is None:
        raise ResourceNotFoundError("Trip", trip_id)

    message = TripMessage(
        trip_id=trip_id,
        sender_type=SenderType(sender_type),
        sender_name=sender_name,
        message=text,
        timestamp=utc_now(),
        is_read=False,
    )
    db.add(message)

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to send message on trip %s", trip_id)
        raise BackendWriteError("Failed to send message")

    await db.refresh(message)

    if notifier is not None:
        await notifier.publish("trip_messages", ChangeEvent.INSERT, [message.id])

    return message


async def list_messages(db: AsyncSession, trip_id: str) -> List[TripMessage]:
    """Thread of a trip, oldest first."""
    result = await db.execute(
        select(TripMessage)
        .where(TripMessage.trip_id == trip_id)
        .order_by(asc(TripMessage.timestamp), asc(TripMessage.id))
    )
    return result.scalars().all()


async def recent_messages(db: AsyncSession, limit: Optional[int] = None) -> List[TripMessage]:
    """Latest messages across all trips, newest first."""
    result = await db.execute(
        select(TripMessage)
        .order_by(desc(TripMessage.timestamp))
        .limit(limit or settings.recent_messages_limit)
    )
    return result.scalars().all()


async def unread_driver_message_count(
    db: AsyncSession,
    trip_ids: Optional[Iterable[str]] = None,
) -> int:
    """
    Unread messages written by drivers.

    Scoped to ``trip_ids`` when given, otherwise to trips that are still
    scheduled or in progress (the dispatcher inbox).
    """
    query = select(func.count(TripMessage.id)).where(
        TripMessage.sender_type == SenderType.DRIVER,
        TripMessage.is_read == False,
    )

    if trip_ids is not None:
        query = query.where(TripMessage.trip_id.in_(list(trip_ids)))
    else:
        query = query.join(Trip, TripMessage.trip_id == Trip.id).where(Trip.status.in_(ACTIVE_STATUSES))

    result = await db.execute(query)
    return result.scalar() or 0


async def mark_messages_read(
    db: AsyncSession,
    trip_id: str,
    reader_type: SenderType,
    notifier=None,
) -> int:
    """Mark the other party's messages on a trip as read; returns rows changed."""
    sender = SenderType.DRIVER if SenderType(reader_type) == SenderType.ADMIN else SenderType.ADMIN

    stmt = update(TripMessage).where(
        TripMessage.trip_id == trip_id,
        TripMessage.sender_type == sender,
        TripMessage.is_read == False,
    ).values(is_read=True)

    try:
        result = await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to mark messages read on trip %s", trip_id)
        raise BackendWriteError("Failed to update messages")

    if result.rowcount and notifier is not None:
        await notifier.publish("trip_messages", ChangeEvent.UPDATE, [])

    return result.rowcount
