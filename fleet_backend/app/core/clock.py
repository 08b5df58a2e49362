"""
Wall-clock helpers.

Trip dates and pickup times are local business time (``settings.timezone``);
audit timestamps are stored in UTC.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fleet_backend.app.core.config import settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Naive local datetime, comparable with a trip's ``date`` + ``time``."""
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)
