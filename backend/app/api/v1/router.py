"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import trips, cities

router = APIRouter()

# Trip lifecycle, search and reporting
router.include_router(trips.router)

# City reference data
router.include_router(cities.router)
