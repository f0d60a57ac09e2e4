"""
Authentication schemas.

The authenticated identity handed to endpoints by the auth dependencies.
"""

from pydantic import BaseModel
from typing import Optional

from backend.app.models.enums import UserRole


class AuthenticatedUser(BaseModel):
    """Identity decoded from a bearer token."""
    user_id: int
    role: UserRole
    company_id: Optional[int] = None
    username: Optional[str] = None

    @property
    def is_company(self) -> bool:
        return self.role == UserRole.COMPANY


class IssuedTokenResponse(BaseModel):
    """Token issued by the local test-token endpoint."""
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: UserRole
    company_id: Optional[int]
