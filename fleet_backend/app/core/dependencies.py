"""
Authentication and collaborator dependencies for FastAPI.

Tokens come from the hosted auth provider; this service only validates them.
Backend collaborators (change notifier, storage client) are built here once
per request from the process-wide clients and injected into endpoints.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fleet_backend.app.core.jwt import decode_access_token
from fleet_backend.app.core.redis_client import get_redis
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.services.cache import ViewCache
from fleet_backend.app.services.realtime import ChangeNotifier
from fleet_backend.app.services.storage import StorageClient

# HTTP Bearer security scheme
security = HTTPBearer()


def validate_token_payload(token: str) -> Optional[dict]:
    """
    Decode a token and check the claims this service relies on.

    Returns the payload, or None if the token is unusable.
    """
    payload = decode_access_token(token)
    if payload is None:
        return None

    if not payload.get("user_id"):
        return None

    try:
        UserRole(payload.get("role"))
    except ValueError:
        return None

    if payload["role"] == UserRole.DRIVER.value and not payload.get("driver_id"):
        return None

    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload (sub, user_id, role, optional name/driver_id)

    Raises:
        HTTPException: 401 if the token is missing, invalid or lacks claims
    """
    payload = validate_token_payload(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


async def get_change_notifier(redis=Depends(get_redis)):
    """Change notifier bound to the shared Redis client."""
    return ChangeNotifier(redis)


async def get_view_cache(redis=Depends(get_redis)):
    """Trip view cache bound to the shared Redis client."""
    return ViewCache(redis)


async def get_storage_client():
    """Document storage client built from settings."""
    return StorageClient.from_settings()
