"""
Driver Assignment API Endpoints.

Dispatchers assign drivers and vehicles to trips; drivers accept or reject.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.enums import BACK_OFFICE_ROLES, UserRole
from fleet_backend.app.models.fleet import Vehicle
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.core.dependencies import get_change_notifier
from fleet_backend.app.core.exceptions import ResourceNotFoundError
from fleet_backend.app.core.guards import require_role
from fleet_backend.app.schemas.trip_assignment import (
    AssignmentDecision,
    DriverAssignment,
    DriverAssignmentResponse,
    TripAssignmentResponse,
    VehicleAssignment,
    VehicleAssignmentResponse,
)
from fleet_backend.app.services.trip_assignment import (
    assign_driver, assign_vehicle, list_assignments, respond_to_assignment
)

router = APIRouter(tags=["Driver Assignment"])


@router.post(
    "/trips/{trip_id}/assign-driver",
    response_model=DriverAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_driver_to_trip(
    assignment: DriverAssignment,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """
    Assign a driver to a trip.

    Records a pending assignment in the trip's history and points the trip
    at the driver. Completed and cancelled trips are rejected.
    """
    trip, record = await assign_driver(
        db, trip_id, assignment.driver_id, note=assignment.notes, notifier=notifier
    )
    return DriverAssignmentResponse(
        trip_id=trip.id,
        driver_id=trip.driver_id,
        assignment=TripAssignmentResponse.model_validate(record),
    )


@router.post("/trips/{trip_id}/assign-vehicle", response_model=VehicleAssignmentResponse)
async def assign_vehicle_to_trip(
    assignment: VehicleAssignment,
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """Reassign the vehicle of a scheduled or in-progress trip."""
    trip = await assign_vehicle(db, trip_id, assignment.vehicle_id, notifier=notifier)
    vehicle = await db.get(Vehicle, trip.vehicle_id)
    return VehicleAssignmentResponse(
        trip_id=trip.id,
        vehicle_id=trip.vehicle_id,
        vehicle_details=vehicle.details,
    )


@router.get("/trips/{trip_id}/assignments", response_model=List[TripAssignmentResponse])
async def get_assignment_history(
    trip_id: str = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Assignment history of a trip, newest first."""
    if await db.get(Trip, trip_id) is None:
        raise ResourceNotFoundError("Trip", trip_id)
    return await list_assignments(db, trip_id)


@router.patch("/assignments/{assignment_id}", response_model=TripAssignmentResponse)
async def answer_assignment(
    decision: AssignmentDecision,
    assignment_id: str = Path(..., description="Assignment ID"),
    current_user: dict = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """Accept or reject a pending assignment (assigned driver only)."""
    record = await respond_to_assignment(
        db,
        assignment_id,
        decision.status,
        driver_id=current_user["driver_id"],
        notifier=notifier,
    )
    return record
