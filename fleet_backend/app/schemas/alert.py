"""
Alert and activity feed schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from fleet_backend.app.models.alert import AlertPriority, AlertType


class AlertResponse(BaseModel):
    id: int
    title: str
    priority: AlertPriority
    type: AlertType
    description: Optional[str]
    related_id: Optional[str]
    related_type: Optional[str]
    resolved: bool
    date: datetime

    class Config:
        from_attributes = True


class ActivityResponse(BaseModel):
    id: int
    title: str
    type: str
    related_id: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True
