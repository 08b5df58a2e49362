"""
Reference records joined into trip views: clients, vehicles, drivers.

These tables are maintained by other back-office screens; the dispatch
workflow only reads them.
"""

from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.trip import new_id, enum_values
from fleet_backend.app.models.trip_enums import ClientType


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    type = Column(
        Enum(ClientType, name="client_type", values_callable=enum_values),
        default=ClientType.INDIVIDUAL,
        nullable=False,
    )
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=new_id)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    registration = Column(String(50), unique=True, nullable=False)
    status = Column(String(50), default="active", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def details(self) -> str:
        return f"{self.make} {self.model} ({self.registration})"


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    contact = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    status = Column(String(50), default="active", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
