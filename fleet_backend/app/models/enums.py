"""
User roles enumeration.

Roles are issued by the hosted auth provider inside the JWT payload.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Back-office administrator with full access
        DISPATCHER: Books trips, assigns drivers, monitors status
        DRIVER: Sees and acts on the trips assigned to them
    """
    ADMIN = "ADMIN"
    DISPATCHER = "DISPATCHER"
    DRIVER = "DRIVER"


BACK_OFFICE_ROLES = [UserRole.ADMIN, UserRole.DISPATCHER]
ALL_ROLES = [UserRole.ADMIN, UserRole.DISPATCHER, UserRole.DRIVER]
