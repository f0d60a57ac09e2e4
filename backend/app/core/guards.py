"""
Security guards for role-based and tenant-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.schemas.auth import AuthenticatedUser


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.delete("/trips/{trip_id}")
        async def delete_trip(current_user: AuthenticatedUser = Depends(require_role([UserRole.COMPANY]))):
            ...

    Raises:
        InsufficientPermissionsError (403) if user role is not in allowed_roles
    """
    async def role_checker(current_user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if current_user.role not in allowed_roles:
            required = [r.value for r in allowed_roles]
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join(required)}",
                details={"required_roles": required, "role": current_user.role.value},
            )

        return current_user

    return role_checker


async def get_current_company(
    current_user: AuthenticatedUser = Depends(get_current_user)
) -> AuthenticatedUser:
    """
    Tenant-scoping dependency.

    Every trip and city belongs to exactly one company, so the caller must
    carry a company_id whatever their role is.

    Raises:
        InsufficientPermissionsError (403) if the token has no tenant
    """
    if current_user.company_id is None:
        raise InsufficientPermissionsError("Company information missing from token")

    return current_user


class TenantGuard:
    """
    Class-based guard for validating multi-tenant access to a loaded resource.

    Usage:
        tenant_guard = TenantGuard()

        trip = await service.find_one(trip_id)
        tenant_guard.enforce(trip.company_id, trip.user_id, current_user, "trip")
    """

    def enforce(
        self,
        resource_company_id: int,
        resource_user_id: int,
        current_user: AuthenticatedUser,
        resource_name: str = "resource"
    ):
        """
        Company accounts may access anything of their tenant, drivers only
        their own records of their tenant.

        Raises:
            HTTPException 404 if the resource is outside the caller's reach
        """
        allowed = resource_company_id == current_user.company_id
        if allowed and not current_user.is_company and resource_user_id is not None:
            allowed = resource_user_id == current_user.user_id

        if not allowed:
            # Hide existence of other tenants' records
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{resource_name.capitalize()} not found"
            )
