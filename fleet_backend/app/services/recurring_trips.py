"""
Recurring trip expansion.

Turns one booking template into the concrete trips of a recurrence.
"""

import copy
from datetime import date, timedelta
from typing import Any, Dict, List, Union

from dateutil.relativedelta import relativedelta

from fleet_backend.app.core.config import settings
from fleet_backend.app.core.exceptions import TripValidationError
from fleet_backend.app.models.trip_enums import RecurrenceFrequency, TripStatus


def occurrence_date(base_date: date, index: int, frequency: RecurrenceFrequency) -> date:
    """
    Date of the ``index``-th occurrence (0-based).

    Monthly steps clamp to the end of shorter months (Jan 31 -> Feb 29 in 2024).
    """
    if frequency == RecurrenceFrequency.DAILY:
        return base_date + timedelta(days=index)
    if frequency == RecurrenceFrequency.WEEKLY:
        return base_date + timedelta(weeks=index)
    return base_date + relativedelta(months=index)


def expand_recurring_trips(
    base: Dict[str, Any],
    occurrences: int,
    frequency: Union[RecurrenceFrequency, str],
) -> List[Dict[str, Any]]:
    """
    Expand a trip payload into ``occurrences`` payloads.

    Args:
        base: Trip creation payload; must contain ``date``
        occurrences: Number of trips to produce, 1..max_recurring_occurrences
        frequency: daily, weekly or monthly

    Returns:
        Payloads in chronological order, each a copy of ``base`` with its own
        date, ``is_recurring=True`` and ``status=scheduled``

    Raises:
        TripValidationError: invalid count, frequency or missing base date
    """
    if occurrences is None or occurrences < 1:
        raise TripValidationError("Number of occurrences must be at least 1", field="occurrences")

    if occurrences > settings.max_recurring_occurrences:
        raise TripValidationError(
            f"Number of occurrences cannot exceed {settings.max_recurring_occurrences}",
            field="occurrences",
        )

    try:
        frequency = RecurrenceFrequency(frequency)
    except ValueError:
        raise TripValidationError(f"Unknown recurrence frequency: {frequency}", field="frequency")

    base_date = base.get("date")
    if not isinstance(base_date, date):
        raise TripValidationError("Recurring trips need a start date", field="date")

    trips = []
    for i in range(occurrences):
        payload = copy.deepcopy(base)
        payload["date"] = occurrence_date(base_date, i, frequency)
        payload["is_recurring"] = True
        payload["status"] = TripStatus.SCHEDULED
        trips.append(payload)

    return trips
