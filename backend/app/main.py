"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Trips Backend.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.dependencies import get_current_user
from backend.app.core.jwt import create_access_token
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.db.session import engine, init_models
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import AuthenticatedUser, IssuedTokenResponse
from fastapi import HTTPException

# Import models to ensure they are registered with the metadata
from backend.app.models.user import User
from backend.app.models.city import City
from backend.app.models.trip import Trip
from backend.app.models.trip_detail import TripDetail


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging.
    2. Creates database tables on startup.
    3. Disposes of the connection pool on shutdown.
    """
    configure_logging(settings.log_level)
    await init_models()
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Fleet trip lifecycle, driving-conduct classification and reporting",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Fleet Trips Backend API",
        "docs": "/docs",
        "health": "/health",
    }


# Token helpers for local development; real tokens come from the identity provider
@app.post("/auth/test-token", tags=["Authentication"], response_model=IssuedTokenResponse)
async def generate_test_token(
    user_id: int = 1,
    role: UserRole = UserRole.DRIVER,
    company_id: Optional[int] = 1,
    username: str = "test_user",
):
    """Generate a JWT carrying user_id, role and company_id."""
    token = create_access_token(data={
        "sub": username,
        "user_id": user_id,
        "role": role.value,
        "company_id": company_id,
    })
    return IssuedTokenResponse(
        access_token=token,
        user_id=user_id,
        role=role,
        company_id=company_id,
    )


@app.get("/auth/me", tags=["Authentication"], response_model=AuthenticatedUser)
async def who_am_i(current_user: AuthenticatedUser = Depends(get_current_user)):
    """Echo the identity decoded from the bearer token."""
    return current_user
