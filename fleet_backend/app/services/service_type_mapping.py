"""
Service-type mapping.

The booking form offers more service types than the trips table can store.
This module is the single place where a UI value is narrowed to a
``DbServiceType``; the narrowing is lossy for hourly, multi-day and other.
"""

from typing import Optional, Union

from fleet_backend.app.models.trip_enums import TripType, DbServiceType

# UI form value -> application trip type
SERVICE_TYPE_MAP = {
    "airport_pickup": TripType.AIRPORT_PICKUP,
    "airport_dropoff": TripType.AIRPORT_DROPOFF,
    "round_trip": TripType.ROUND_TRIP,
    "security_escort": TripType.SECURITY_ESCORT,
    "one_way": TripType.ONE_WAY_TRANSFER,
    "full_day_hire": TripType.FULL_DAY,
    "hourly": TripType.HOURLY,
    "multi_day": TripType.MULTI_DAY,
    "other": TripType.OTHER,
}

TRIP_TYPE_DISPLAY_NAMES = {
    TripType.AIRPORT_PICKUP: "Airport Pickup",
    TripType.AIRPORT_DROPOFF: "Airport Dropoff",
    TripType.OTHER: "Other Service",
    TripType.HOURLY: "Hourly Service",
    TripType.FULL_DAY: "Full Day",
    TripType.MULTI_DAY: "Multi Day",
    TripType.ONE_WAY_TRANSFER: "One Way Transfer",
    TripType.ROUND_TRIP: "Round Trip",
    TripType.SECURITY_ESCORT: "Security Escort",
}

# Trip types that carry flight metadata and travel documents
AIRPORT_TRIP_TYPES = frozenset({TripType.AIRPORT_PICKUP, TripType.AIRPORT_DROPOFF})

# Trip types that carry a return time (UI: round_trip, security_escort, full_day_hire)
RETURN_TIME_TRIP_TYPES = frozenset({TripType.ROUND_TRIP, TripType.SECURITY_ESCORT, TripType.FULL_DAY})

_DB_SERVICE_VALUES = {member.value for member in DbServiceType}


def map_ui_service_type_to_trip_type(ui_value: Optional[str]) -> TripType:
    """Translate a form value; unknown values become ``TripType.OTHER``."""
    if not ui_value:
        return TripType.OTHER
    if ui_value in SERVICE_TYPE_MAP:
        return SERVICE_TYPE_MAP[ui_value]
    try:
        return TripType(ui_value)
    except ValueError:
        return TripType.OTHER


def map_trip_type_to_db_service_type(trip_type: Union[TripType, DbServiceType, str, None]) -> DbServiceType:
    """
    Narrow a trip type to a storable service type.

    Identity for the six storable types; everything else, including
    hourly, multi_day, other and unrecognised values, is stored as
    ``one_way_transfer``. Idempotent: f(f(x)) == f(x).
    """
    value = getattr(trip_type, "value", trip_type)
    if value in _DB_SERVICE_VALUES:
        return DbServiceType(value)
    return DbServiceType.ONE_WAY_TRANSFER


def display_service_type(value: Union[TripType, DbServiceType, str, None]) -> str:
    """Human label for a stored or application service type."""
    value = getattr(value, "value", value)
    try:
        return TRIP_TYPE_DISPLAY_NAMES[TripType(value)]
    except ValueError:
        return TRIP_TYPE_DISPLAY_NAMES[TripType.OTHER]


def is_airport_service(ui_value: Optional[str]) -> bool:
    return map_ui_service_type_to_trip_type(ui_value) in AIRPORT_TRIP_TYPES


def needs_return_time(ui_value: Optional[str]) -> bool:
    return map_ui_service_type_to_trip_type(ui_value) in RETURN_TIME_TRIP_TYPES
