"""
Trip database model.

A trip is a single scheduled transport job. It is the authoritative write
model; joined display data lives in ``schemas.trip.DisplayTripResponse``.
"""

import uuid

from sqlalchemy import (
    Column, String, ForeignKey, DateTime, Date, Time, Enum, Boolean, Float, Text, JSON
)
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.trip_enums import TripStatus, DbServiceType


def new_id() -> str:
    return str(uuid.uuid4())


def enum_values(enum_cls):
    # Store the lowercase values, not the member names
    return [member.value for member in enum_cls]


class Trip(Base):
    """
    Trip model.

    ``driver_id`` mirrors the latest TripAssignment and is only written by
    the assignment workflow or the save orchestrator.
    """
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=new_id)

    # Parties
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=True, index=True)
    driver_id = Column(String(36), ForeignKey("drivers.id"), nullable=True, index=True)

    # Scheduling
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    return_time = Column(Time, nullable=True)
    actual_pickup_at = Column(DateTime(timezone=True), nullable=True)
    actual_dropoff_at = Column(DateTime(timezone=True), nullable=True)

    # Classification
    service_type = Column(
        Enum(DbServiceType, name="service_type", values_callable=enum_values),
        nullable=False,
    )
    status = Column(
        Enum(TripStatus, name="trip_status", values_callable=enum_values),
        default=TripStatus.SCHEDULED,
        nullable=False,
        index=True,
    )

    # Route
    pickup_location = Column(String(255), nullable=True)
    dropoff_location = Column(String(255), nullable=True)

    # Commercial
    amount = Column(Float, nullable=False, default=0)
    invoice_id = Column(String(36), nullable=True)

    # Flight metadata (airport trips)
    airline = Column(String(100), nullable=True)
    flight_number = Column(String(20), nullable=True)
    terminal = Column(String(50), nullable=True)

    is_recurring = Column(Boolean, nullable=False, default=False)

    # Organization clients only
    passengers = Column(JSON, nullable=True)

    # Airport trips only: [{"name", "url", "passenger_name"}]
    passport_documents = Column(JSON, nullable=True)
    invitation_documents = Column(JSON, nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Trip(id={self.id}, date={self.date}, status='{self.status.value}')>"
