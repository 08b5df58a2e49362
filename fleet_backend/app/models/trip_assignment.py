"""
Trip assignment history.

One row per driver assignment; rows are never overwritten.
"""

from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Text
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.trip import new_id, enum_values
from fleet_backend.app.models.trip_enums import AssignmentStatus


class TripAssignment(Base):
    __tablename__ = "trip_assignments"

    id = Column(String(36), primary_key=True, default=new_id)
    trip_id = Column(String(36), ForeignKey("trips.id"), nullable=False, index=True)
    driver_id = Column(String(36), ForeignKey("drivers.id"), nullable=False, index=True)

    assigned_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        Enum(AssignmentStatus, name="assignment_status", values_callable=enum_values),
        default=AssignmentStatus.PENDING,
        nullable=False,
    )
    notes = Column(Text, nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TripAssignment(id={self.id}, trip={self.trip_id}, driver={self.driver_id}, status='{self.status.value}')>"
