"""
User roles enumeration.

Defines the role types for the fleet trips system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        COMPANY: Tenant account, sees every trip of its company
        DRIVER: Drives trips, sees only their own (default role)
    """
    COMPANY = "company"
    DRIVER = "driver"
