"""
Alert Service.

Creates and resolves operational alerts.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc
from typing import Optional, List

from fleet_backend.app.core.clock import utc_now
from fleet_backend.app.models.alert import Alert, AlertPriority, AlertType

logger = logging.getLogger("fleet.alerts")


class AlertService:

    @staticmethod
    async def create_alert(
        db: AsyncSession,
        title: str,
        type: AlertType,
        priority: AlertPriority = AlertPriority.MEDIUM,
        description: Optional[str] = None,
        related_id: Optional[str] = None,
        related_type: Optional[str] = None,
    ) -> Alert:
        """Create a single unresolved alert."""
        alert = Alert(
            title=title,
            priority=priority,
            type=type,
            description=description,
            related_id=related_id,
            related_type=related_type,
            resolved=False,
            date=utc_now(),
        )
        db.add(alert)
        await db.flush()  # Caller commits
        logger.info("Alert created: %s", title, extra={"priority": priority.value, "related_id": related_id})
        return alert

    @staticmethod
    async def resolve_alert(db: AsyncSession, alert_id: int) -> bool:
        """Mark an alert as resolved."""
        stmt = update(Alert).where(Alert.id == alert_id).values(resolved=True)
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def list_alerts(
        db: AsyncSession,
        active_only: bool = True,
        type: Optional[AlertType] = None,
        priority: Optional[AlertPriority] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        """Alerts, newest first."""
        query = select(Alert)

        if active_only:
            query = query.where(Alert.resolved == False)
        if type:
            query = query.where(Alert.type == type)
        if priority:
            query = query.where(Alert.priority == priority)

        query = query.order_by(desc(Alert.date), desc(Alert.id))
        if limit:
            query = query.limit(limit)

        result = await db.execute(query)
        return result.scalars().all()
