"""
Driver assignment schemas.
"""

from pydantic import BaseModel
from typing import Literal, Optional
from datetime import datetime

from fleet_backend.app.models.trip_enums import AssignmentStatus


class DriverAssignment(BaseModel):
    """Schema for assigning a driver to a trip."""
    driver_id: str
    notes: Optional[str] = None


class TripAssignmentResponse(BaseModel):
    id: str
    trip_id: str
    driver_id: str
    assigned_at: datetime
    status: AssignmentStatus
    notes: Optional[str]
    responded_at: Optional[datetime] = None
    driver_name: Optional[str] = None
    driver_avatar: Optional[str] = None

    class Config:
        from_attributes = True


class DriverAssignmentResponse(BaseModel):
    """Response after driver assignment."""
    trip_id: str
    driver_id: str
    assignment: TripAssignmentResponse


class AssignmentDecision(BaseModel):
    """Driver's answer to a pending assignment."""
    status: Literal["accepted", "rejected"]


class VehicleAssignment(BaseModel):
    """Schema for reassigning the vehicle of a trip."""
    vehicle_id: str


class VehicleAssignmentResponse(BaseModel):
    """Response after vehicle reassignment."""
    trip_id: str
    vehicle_id: str
    vehicle_details: str
