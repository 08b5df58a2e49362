"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleet_backend.app.api.v1.endpoints import (
    trips, trip_assignments, trip_messages,
    dispatch, alerts, realtime
)

router = APIRouter()

# Booking, editing and status
router.include_router(trips.router)

# Driver assignment workflow
router.include_router(trip_assignments.router)

# Trip messaging
router.include_router(trip_messages.router)

# Overdue sweep
router.include_router(dispatch.router)

# Alerts and activity feed
router.include_router(alerts.router)

# Change stream
router.include_router(realtime.router)
