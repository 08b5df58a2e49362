"""
Dispatch API Endpoints.

Manual trigger for the overdue sweep that normally runs in the background.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.enums import BACK_OFFICE_ROLES
from fleet_backend.app.core.clock import local_now
from fleet_backend.app.core.dependencies import get_change_notifier
from fleet_backend.app.core.guards import require_role
from fleet_backend.app.schemas.trip import OverdueSweepResponse
from fleet_backend.app.services.overdue_monitor import sweep_overdue_trips

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])


@router.post("/overdue-sweep", response_model=OverdueSweepResponse)
async def run_overdue_sweep(
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    """
    Cancel scheduled trips whose pickup time has passed.

    Safe to call repeatedly; trips already handled are not touched again.
    """
    now = local_now()
    cancelled = await sweep_overdue_trips(db, now=now, notifier=notifier)
    return OverdueSweepResponse(swept_at=now, cancelled_trip_ids=cancelled, count=len(cancelled))
