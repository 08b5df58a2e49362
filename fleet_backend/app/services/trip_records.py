"""
Trip record helpers.

Status resolution (including the legacy ``STATUS:<value>`` notes prefix),
the display projection and trip labels used in activity entries.
"""

import re
from typing import Optional

from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.fleet import Client, Vehicle, Driver
from fleet_backend.app.models.trip_enums import TripStatus
from fleet_backend.app.schemas.trip import DisplayTripResponse, TripResponse
from fleet_backend.app.services.service_type_mapping import display_service_type

LEGACY_STATUS_PATTERN = re.compile(r"^STATUS:([a-z_]+)[ \t]*(?:\r?\n)*", re.IGNORECASE)


def extract_legacy_status(notes: Optional[str]) -> Optional[str]:
    """Status value encoded at the start of notes by older clients, if any."""
    if not notes:
        return None
    match = LEGACY_STATUS_PATTERN.match(notes)
    return match.group(1).lower() if match else None


def strip_legacy_status(notes: Optional[str]) -> Optional[str]:
    """Notes without the legacy status prefix; None when nothing is left."""
    if not notes:
        return notes
    stripped = LEGACY_STATUS_PATTERN.sub("", notes, count=1)
    return stripped or None


def validate_trip_status(value) -> Optional[TripStatus]:
    value = getattr(value, "value", value)
    try:
        return TripStatus(value)
    except ValueError:
        return None


def resolve_trip_status(raw_status, notes: Optional[str] = None) -> TripStatus:
    """
    Status of a stored row.

    The dedicated column wins; rows imported before it existed fall back to
    the notes prefix, then to ``scheduled``.
    """
    status = validate_trip_status(raw_status)
    if status is not None:
        return status
    return validate_trip_status(extract_legacy_status(notes)) or TripStatus.SCHEDULED


def format_flight_info(flight_number: Optional[str], airline: Optional[str], terminal: Optional[str]) -> str:
    return ", ".join(part.strip() for part in (flight_number, airline, terminal) if part and part.strip())


def trip_label(trip: Trip) -> str:
    """'<pickup> to <dropoff>' when both are known, else a short id label."""
    if trip.pickup_location and trip.dropoff_location:
        return f"{trip.pickup_location} to {trip.dropoff_location}"
    return f"#{trip.id[:8]}"


def to_display_trip(
    trip: Trip,
    client: Optional[Client] = None,
    vehicle: Optional[Vehicle] = None,
    driver: Optional[Driver] = None,
) -> DisplayTripResponse:
    """Assemble the read-only display projection of a trip."""
    base = TripResponse.model_validate(trip).model_dump()
    base["status"] = resolve_trip_status(trip.status, trip.notes)

    return DisplayTripResponse(
        **base,
        client_name=client.name if client else "Unknown Client",
        client_type=client.type if client else None,
        vehicle_details=vehicle.details if vehicle else "No Vehicle",
        driver_name=driver.name if driver else "No Driver",
        driver_avatar=driver.avatar_url if driver else None,
        driver_contact=driver.contact if driver else None,
        display_type=display_service_type(trip.service_type),
        flight_info=format_flight_info(trip.flight_number, trip.airline, trip.terminal),
    )
