"""
Trip API Endpoints.

Booking, editing, deleting and listing trips, manual status changes and
travel document uploads.
"""

import json
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.enums import ALL_ROLES, BACK_OFFICE_ROLES, UserRole
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.schemas.trip import (
    DisplayTripResponse,
    DocumentUploadResponse,
    TripFormData,
    TripListResponse,
    TripResponse,
    TripSaveResponse,
    TripStatusUpdate,
)
from fleet_backend.app.core.dependencies import get_change_notifier, get_storage_client, get_view_cache
from fleet_backend.app.core.exceptions import ResourceNotFoundError
from fleet_backend.app.core.guards import require_role, TripAccessGuard
from fleet_backend.app.services.storage import attach_trip_document
from fleet_backend.app.services.trip_service import (
    delete_trip, get_display_trip, list_display_trips, save_trip
)
from fleet_backend.app.services.trip_status import set_trip_status

router = APIRouter(prefix="/trips", tags=["Trips"])
trip_access = TripAccessGuard()


def _save_response(result) -> TripSaveResponse:
    return TripSaveResponse(
        outcome=result.outcome,
        count=result.count,
        trips=[TripResponse.model_validate(trip) for trip in result.trips],
    )


@router.get("", response_model=TripListResponse)
async def list_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    client_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    cache=Depends(get_view_cache),
):
    """
    List trips with client, vehicle and driver details, latest first.

    Pages are cached per filter set until the next trip change.
    """
    cache_key = json.dumps({
        "status": status_filter.value if status_filter else None,
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "client_id": client_id,
        "driver_id": driver_id,
        "search": search,
        "page": page,
        "page_size": page_size,
    }, sort_keys=True)

    cached = await cache.get("trips", cache_key)
    if cached is not None:
        return cached

    listing = await list_display_trips(
        db,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        client_id=client_id,
        driver_id=driver_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    response = TripListResponse(**listing)
    await cache.set("trips", cache_key, response.model_dump(mode="json"))
    return response


@router.get("/{trip_id}", response_model=DisplayTripResponse)
async def get_trip(
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(ALL_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Trip details. Drivers only see trips assigned to them."""
    trip = await get_display_trip(db, trip_id)
    trip_access.enforce(trip.driver_id, current_user)
    return trip


@router.post("", response_model=TripSaveResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    form: TripFormData,
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """
    Book a trip.

    With ``is_recurring`` set, one trip per occurrence is created at the
    given frequency, all in one transaction.
    """
    result = await save_trip(db, form, notifier=notifier)
    return _save_response(result)


@router.put("/{trip_id}", response_model=TripSaveResponse)
async def update_trip(
    form: TripFormData,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """Save the edit form of an existing trip. Recurrence fields are ignored."""
    result = await save_trip(db, form, editing_trip_id=trip_id, notifier=notifier)
    return _save_response(result)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_trip(
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    await delete_trip(db, trip_id, notifier=notifier)


@router.patch("/{trip_id}/status", response_model=TripResponse)
async def update_trip_status(
    body: TripStatusUpdate,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(ALL_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """
    Move a trip along its lifecycle.

    Drivers may only update trips assigned to them. Forbidden transitions
    return 409.
    """
    if UserRole(current_user["role"]) == UserRole.DRIVER:
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        trip_access.enforce(trip.driver_id, current_user)

    trip = await set_trip_status(db, trip_id, body.status, notifier=notifier)
    return trip


@router.post("/{trip_id}/documents", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_trip_document(
    trip_id: str = Path(..., description="Trip ID"),
    kind: str = Form(..., pattern="^(passport|invitation)$"),
    passenger_name: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage_client),
    notifier=Depends(get_change_notifier),
):
    """Upload a passport or invitation document for an airport trip."""
    content = await file.read()
    documents = await attach_trip_document(
        db,
        storage,
        trip_id=trip_id,
        kind=kind,
        filename=file.filename or "document",
        content=content,
        content_type=file.content_type,
        passenger_name=passenger_name,
        notifier=notifier,
    )
    return DocumentUploadResponse(
        trip_id=trip_id,
        kind=kind,
        document=documents[-1],
        documents=documents,
    )
