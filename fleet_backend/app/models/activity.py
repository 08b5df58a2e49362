"""
Activity feed model.

Append-only log of human-readable back-office events ("Driver X assigned
to trip Y"), shown on the dashboard.
"""

from sqlalchemy import Column, Integer, String, DateTime
from fleet_backend.app.db.session import Base


class ActivityType:
    """Standardized activity type tags."""
    TRIP = "trip"
    MAINTENANCE = "maintenance"
    VEHICLE = "vehicle"
    DRIVER = "driver"
    CLIENT = "client"
    FUEL = "fuel"
    CONTRACT = "contract"


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    type = Column(String(50), nullable=False, index=True)
    related_id = Column(String(36), nullable=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Activity(id={self.id}, type='{self.type}', title='{self.title}')>"
