"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip lifecycle status."""
    SCHEDULED = "scheduled"  # Booked, waiting for pickup time
    IN_PROGRESS = "in_progress"  # Driver picked up the passengers
    COMPLETED = "completed"  # Terminal
    CANCELLED = "cancelled"  # Terminal, also set by the overdue sweep


class TripType(str, enum.Enum):
    """Service type as the application understands it."""
    AIRPORT_PICKUP = "airport_pickup"
    AIRPORT_DROPOFF = "airport_dropoff"
    OTHER = "other"
    HOURLY = "hourly"
    FULL_DAY = "full_day"
    MULTI_DAY = "multi_day"
    ONE_WAY_TRANSFER = "one_way_transfer"
    ROUND_TRIP = "round_trip"
    SECURITY_ESCORT = "security_escort"


class DbServiceType(str, enum.Enum):
    """Service types the trips table accepts."""
    AIRPORT_PICKUP = "airport_pickup"
    AIRPORT_DROPOFF = "airport_dropoff"
    FULL_DAY = "full_day"
    ONE_WAY_TRANSFER = "one_way_transfer"
    ROUND_TRIP = "round_trip"
    SECURITY_ESCORT = "security_escort"


class AssignmentStatus(str, enum.Enum):
    """Driver response to an assignment."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SenderType(str, enum.Enum):
    """Author side of a trip message."""
    ADMIN = "admin"
    DRIVER = "driver"


class RecurrenceFrequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ClientType(str, enum.Enum):
    ORGANIZATION = "organization"
    INDIVIDUAL = "individual"


TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})
ACTIVE_STATUSES = (TripStatus.SCHEDULED, TripStatus.IN_PROGRESS)
