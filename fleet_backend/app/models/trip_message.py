"""
Per-trip message thread between dispatchers and drivers. Append-only.
"""

from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Text, Boolean
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.trip import new_id, enum_values
from fleet_backend.app.models.trip_enums import SenderType


class TripMessage(Base):
    __tablename__ = "trip_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    trip_id = Column(String(36), ForeignKey("trips.id"), nullable=False, index=True)

    sender_type = Column(
        Enum(SenderType, name="sender_type", values_callable=enum_values),
        nullable=False,
    )
    sender_name = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)

    def __repr__(self):
        return f"<TripMessage(id={self.id}, trip={self.trip_id}, sender='{self.sender_type.value}')>"
