"""
FastAPI dependencies.

JWT authentication for protected routes, and the per-request wiring of the
trip domain services.

Token issuance and revocation live outside this service; only the bearer
payload is trusted here.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.config import settings
from backend.app.core.jwt import decode_access_token
from backend.app.db.session import get_db
from backend.app.domain.trips.classifier import ConductClassifier
from backend.app.domain.trips.store import SqlAlchemyTripStore
from backend.app.domain.trips.trip_service import TripService
from backend.app.schemas.auth import AuthenticatedUser

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthenticatedUser:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Maps the payload onto an AuthenticatedUser (user_id, role, company_id)

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return AuthenticatedUser(
            user_id=payload["user_id"],
            role=payload.get("role"),
            company_id=payload.get("company_id"),
            username=payload.get("sub"),
        )
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_conduct_classifier() -> ConductClassifier:
    """Classifier pointed at the configured prediction service."""
    return ConductClassifier(settings.ml_url, timeout=settings.ml_timeout_seconds)


async def get_trip_service(
    db: AsyncSession = Depends(get_db),
    classifier: ConductClassifier = Depends(get_conduct_classifier),
) -> TripService:
    """Per-request trip service over the request's database session."""
    return TripService(SqlAlchemyTripStore(db), classifier)
