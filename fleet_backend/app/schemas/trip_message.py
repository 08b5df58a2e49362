"""
Trip message schemas.
"""

from pydantic import BaseModel
from datetime import datetime

from fleet_backend.app.models.trip_enums import SenderType


class TripMessageCreate(BaseModel):
    message: str


class TripMessageResponse(BaseModel):
    id: str
    trip_id: str
    sender_type: SenderType
    sender_name: str
    message: str
    timestamp: datetime
    is_read: bool

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    status: str
    count: int
