"""
Recurring trip expansion.
"""

import pytest
from datetime import date, time

from fleet_backend.app.core.exceptions import TripValidationError
from fleet_backend.app.models.trip_enums import RecurrenceFrequency, TripStatus
from fleet_backend.app.services.recurring_trips import expand_recurring_trips


def base_payload(**overrides):
    payload = {
        "client_id": "c-1",
        "date": date(2024, 1, 1),
        "time": time(8, 30),
        "pickup_location": "Hotel",
        "dropoff_location": "Office",
        "passengers": ["A. Guest"],
        "amount": 120.0,
    }
    payload.update(overrides)
    return payload


def test_weekly_expansion_dates():
    trips = expand_recurring_trips(base_payload(), occurrences=3, frequency="weekly")

    assert [t["date"] for t in trips] == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]
    assert all(t["is_recurring"] for t in trips)
    assert all(t["status"] == TripStatus.SCHEDULED for t in trips)
    assert all(t["time"] == time(8, 30) and t["amount"] == 120.0 for t in trips)


def test_daily_expansion_crosses_month_end():
    trips = expand_recurring_trips(base_payload(date=date(2024, 1, 30)), 3, RecurrenceFrequency.DAILY)
    assert [t["date"] for t in trips] == [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1)]


def test_monthly_expansion_clamps_to_month_end():
    trips = expand_recurring_trips(base_payload(date=date(2024, 1, 31)), 3, "monthly")
    assert [t["date"] for t in trips] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]


def test_payloads_do_not_share_mutable_fields():
    trips = expand_recurring_trips(base_payload(), 2, "daily")
    trips[0]["passengers"].append("B. Guest")
    assert trips[1]["passengers"] == ["A. Guest"]


@pytest.mark.parametrize("occurrences", [0, -2])
def test_non_positive_occurrences_rejected(occurrences):
    with pytest.raises(TripValidationError):
        expand_recurring_trips(base_payload(), occurrences, "daily")


def test_occurrences_above_limit_rejected():
    with pytest.raises(TripValidationError):
        expand_recurring_trips(base_payload(), 366, "daily")


def test_unknown_frequency_rejected():
    with pytest.raises(TripValidationError) as exc:
        expand_recurring_trips(base_payload(), 2, "fortnightly")
    assert exc.value.details == {"field": "frequency"}
