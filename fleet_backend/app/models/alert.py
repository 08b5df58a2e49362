"""
Alert Database Model.

Operational alerts raised by the system (missed trips, expiring contracts).
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.trip import enum_values
import enum


class AlertPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertType(str, enum.Enum):
    MAINTENANCE = "maintenance"
    DRIVER = "driver"
    FUEL = "fuel"
    VEHICLE = "vehicle"
    TRIP = "trip"
    CONTRACT = "contract"


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    title = Column(String(255), nullable=False)
    priority = Column(
        Enum(AlertPriority, name="alert_priority", values_callable=enum_values),
        default=AlertPriority.MEDIUM,
        nullable=False,
        index=True,
    )
    type = Column(
        Enum(AlertType, name="alert_type", values_callable=enum_values),
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=True)

    # Entity the alert points at
    related_id = Column(String(36), nullable=True, index=True)
    related_type = Column(String(50), nullable=True)

    resolved = Column(Boolean, default=False, nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Alert(id={self.id}, priority='{self.priority.value}', title='{self.title}')>"
