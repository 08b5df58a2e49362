"""
Trip schemas.

``TripFormData`` is what the booking/edit form submits. ``TripResponse`` is
the stored record; ``DisplayTripResponse`` adds joined, read-only fields and
is never accepted as input.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date as date_type, datetime, time as time_type

from fleet_backend.app.models.trip_enums import (
    TripStatus, DbServiceType, RecurrenceFrequency, ClientType
)


class TripDocument(BaseModel):
    """Uploaded passport or invitation document."""
    name: str
    url: str
    passenger_name: Optional[str] = None


class TripFormData(BaseModel):
    """Booking/edit form input. ``service_type`` is the UI value."""
    client_id: Optional[str] = None
    client_type: Optional[ClientType] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None

    date: Optional[date_type] = None
    time: Optional[time_type] = None
    return_time: Optional[time_type] = None

    service_type: str = "other"
    status: Optional[TripStatus] = None
    amount: Optional[float] = None

    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    special_notes: Optional[str] = None

    airline: Optional[str] = None
    flight_number: Optional[str] = None
    terminal: Optional[str] = None

    is_recurring: bool = False
    occurrences: Optional[int] = None
    frequency: Optional[RecurrenceFrequency] = None

    passengers: Optional[List[str]] = None
    passport_documents: Optional[List[TripDocument]] = None
    invitation_documents: Optional[List[TripDocument]] = None


class TripResponse(BaseModel):
    """Stored trip record."""
    id: str
    client_id: str
    vehicle_id: Optional[str]
    driver_id: Optional[str]
    date: date_type
    time: time_type
    return_time: Optional[time_type]
    actual_pickup_at: Optional[datetime]
    actual_dropoff_at: Optional[datetime]
    service_type: DbServiceType
    status: TripStatus
    amount: float
    pickup_location: Optional[str]
    dropoff_location: Optional[str]
    airline: Optional[str]
    flight_number: Optional[str]
    terminal: Optional[str]
    is_recurring: bool
    passengers: Optional[List[str]]
    passport_documents: Optional[List[TripDocument]]
    invitation_documents: Optional[List[TripDocument]]
    notes: Optional[str]
    invoice_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DisplayTripResponse(TripResponse):
    """Trip with denormalized client/vehicle/driver data for list and detail views."""
    client_name: str
    client_type: Optional[ClientType] = None
    vehicle_details: str
    driver_name: str
    driver_avatar: Optional[str] = None
    driver_contact: Optional[str] = None
    display_type: str
    flight_info: str = ""


class TripListResponse(BaseModel):
    """Schema for paginated trip list."""
    trips: List[DisplayTripResponse]
    total: int
    page: int
    page_size: int


class TripSaveResponse(BaseModel):
    """Outcome of the save orchestrator."""
    outcome: str  # updated | recurring_created | created
    count: int
    trips: List[TripResponse]


class TripStatusUpdate(BaseModel):
    status: TripStatus


class OverdueSweepResponse(BaseModel):
    swept_at: datetime
    cancelled_trip_ids: List[str]
    count: int


class DocumentUploadResponse(BaseModel):
    trip_id: str
    kind: str  # passport | invitation
    document: TripDocument
    documents: List[TripDocument] = Field(default_factory=list)
