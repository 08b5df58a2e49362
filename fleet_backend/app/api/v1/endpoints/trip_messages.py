"""
Trip Messaging API Endpoints.

Per-trip threads between the back office and the assigned driver.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.enums import ALL_ROLES, BACK_OFFICE_ROLES, UserRole
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import SenderType
from fleet_backend.app.core.dependencies import get_change_notifier
from fleet_backend.app.core.exceptions import ResourceNotFoundError
from fleet_backend.app.core.guards import require_role, TripAccessGuard
from fleet_backend.app.schemas.trip_message import (
    MarkReadResponse, TripMessageCreate, TripMessageResponse, UnreadCountResponse
)
from fleet_backend.app.services.trip_messages import (
    list_messages, mark_messages_read, recent_messages, send_message, unread_driver_message_count
)

router = APIRouter(tags=["Trip Messages"])
trip_access = TripAccessGuard()


def sender_type_for(current_user: dict) -> SenderType:
    if UserRole(current_user["role"]) == UserRole.DRIVER:
        return SenderType.DRIVER
    return SenderType.ADMIN


async def _load_trip(db: AsyncSession, trip_id: str, current_user: dict) -> Trip:
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise ResourceNotFoundError("Trip", trip_id)
    trip_access.enforce(trip.driver_id, current_user)
    return trip


@router.get("/trips/{trip_id}/messages", response_model=List[TripMessageResponse])
async def get_trip_messages(
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(ALL_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Thread of a trip, oldest first."""
    await _load_trip(db, trip_id, current_user)
    return await list_messages(db, trip_id)


@router.post(
    "/trips/{trip_id}/messages",
    response_model=TripMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_trip_message(
    body: TripMessageCreate,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(ALL_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    await _load_trip(db, trip_id, current_user)
    return await send_message(
        db,
        trip_id,
        sender_type=sender_type_for(current_user),
        sender_name=current_user.get("name") or current_user.get("sub") or "Unknown",
        text=body.message,
        notifier=notifier,
    )


@router.patch("/trips/{trip_id}/messages/read", response_model=MarkReadResponse)
async def mark_trip_messages_read(
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(ALL_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """Mark the other party's messages on this trip as read."""
    await _load_trip(db, trip_id, current_user)
    count = await mark_messages_read(db, trip_id, sender_type_for(current_user), notifier=notifier)
    return MarkReadResponse(status="ok", count=count)


@router.get("/messages/recent", response_model=List[TripMessageResponse])
async def get_recent_messages(
    limit: Optional[int] = Query(None, ge=1, le=200),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Latest messages across all trips, newest first."""
    return await recent_messages(db, limit=limit)


@router.get("/messages/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Unread driver messages on scheduled and in-progress trips."""
    return UnreadCountResponse(unread_count=await unread_driver_message_count(db))
