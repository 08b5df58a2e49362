"""
Security guards for role-based and assignment-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/trips")
        async def list_trips(current_user: dict = Depends(require_role(BACK_OFFICE_ROLES))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role = UserRole(current_user["role"])

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def is_driver(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.DRIVER.value


class TripAccessGuard:
    """
    Drivers may only touch trips currently assigned to them.
    Back-office roles see every trip.

    Usage:
        trip_access = TripAccessGuard()

        trip = await get_trip(db, trip_id)
        trip_access.enforce(trip.driver_id, current_user)
    """

    def enforce(
        self,
        trip_driver_id: Optional[str],
        current_user: dict,
        resource_name: str = "trip"
    ):
        """
        Raises:
            HTTPException 403 if a driver is not assigned to the trip
        """
        if not is_driver(current_user):
            return

        if trip_driver_id is None or trip_driver_id != current_user.get("driver_id"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. This {resource_name} is not assigned to you."
            )
