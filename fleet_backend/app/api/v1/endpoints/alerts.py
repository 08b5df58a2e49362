"""
Alerts and Activity Feed API Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.alert import AlertPriority, AlertType
from fleet_backend.app.models.enums import BACK_OFFICE_ROLES
from fleet_backend.app.core.dependencies import get_change_notifier
from fleet_backend.app.core.exceptions import ResourceNotFoundError
from fleet_backend.app.core.guards import require_role
from fleet_backend.app.schemas.alert import ActivityResponse, AlertResponse
from fleet_backend.app.services.activity_log import get_activities
from fleet_backend.app.services.alert_service import AlertService
from fleet_backend.app.services.realtime import ChangeEvent

router = APIRouter(tags=["Alerts"])


@router.get("/alerts", response_model=List[AlertResponse])
async def list_alerts(
    include_resolved: bool = Query(False),
    type: Optional[AlertType] = Query(None),
    priority: Optional[AlertPriority] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Alerts, newest first. Unresolved only unless ``include_resolved``."""
    return await AlertService.list_alerts(
        db, active_only=not include_resolved, type=type, priority=priority, limit=limit
    )


@router.patch("/alerts/{alert_id}/resolve")
async def resolve_alert(
    alert_id: int = Path(..., description="Alert ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_change_notifier),
):
    if not await AlertService.resolve_alert(db, alert_id):
        raise ResourceNotFoundError("Alert", alert_id)
    await db.commit()

    await notifier.publish("alerts", ChangeEvent.UPDATE, [str(alert_id)])
    return {"status": "resolved", "id": alert_id}


@router.get("/activities", response_model=List[ActivityResponse])
async def list_activities(
    limit: int = Query(20, ge=1, le=200),
    type: Optional[str] = Query(None),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """Recent activity feed, newest first."""
    return await get_activities(db, limit=limit, type=type)
