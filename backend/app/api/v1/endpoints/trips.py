"""
Trip API Endpoints.

Company accounts manage every trip of their tenant, drivers only their own.
Business rules live in TripService; these handlers only scope and map.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query

from backend.app.core.dependencies import get_trip_service
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.core.guards import get_current_company, require_role, TenantGuard
from backend.app.domain.trips.records import DecoratedTrip, TripFilters
from backend.app.domain.trips.trip_service import TripService
from backend.app.models.enums import UserRole
from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.auth import AuthenticatedUser
from backend.app.schemas.trip import (
    AlertDetailCreate, AlertDetailResponse, RouteListResponse, TripCountResponse,
    TripCreate, TripResponse, TripSearchResult, TripUpdate,
)

router = APIRouter(prefix="/trips", tags=["Trips"])
tenant_guard = TenantGuard()


def _search_result(decorated: DecoratedTrip) -> TripSearchResult:
    trip = TripResponse.model_validate(decorated.trip)
    return TripSearchResult(
        **trip.model_dump(),
        total_alerts=decorated.total_alerts,
        responded_alerts=decorated.responded_alerts,
    )


async def _load_scoped(service: TripService, trip_id: int, current_user: AuthenticatedUser):
    trip = await service.find_one(trip_id)
    tenant_guard.enforce(trip.company_id, trip.user_id, current_user, "trip")
    return trip


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """
    Create a trip for the caller's company.

    Drivers always create trips for themselves; company accounts name the driver.
    The conduct label is resolved by the prediction service, or UNKNOWN.
    """
    driver_id = trip_data.user_id if current_user.is_company else current_user.user_id
    trip_data = trip_data.model_copy(update={
        "company_id": current_user.company_id,
        "user_id": driver_id,
    })

    trip = await service.create(trip_data)
    return TripResponse.model_validate(trip)


@router.get("", response_model=List[TripResponse])
async def list_trips(
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """List trips newest first: the whole company for company accounts, own trips for drivers."""
    if current_user.is_company:
        trips = await service.list_for_company(current_user.company_id)
    else:
        trips = await service.list_for_driver(current_user.user_id)
    return [TripResponse.model_validate(t) for t in trips]


@router.get("/search", response_model=List[TripSearchResult])
async def search_trips(
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    driver: Optional[int] = Query(None, description="Driver ID"),
    destination: Optional[str] = Query(None, description="Part of '<origin> - <destination>'"),
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Search trips with optional filters; results carry alert counters."""
    filters = TripFilters(
        date_from=date_from,
        date_to=date_to,
        driver=driver,
        destination=destination,
        status=trip_status,
    )
    results = await service.search(current_user, filters)
    return [_search_result(r) for r in results]


@router.get("/count/current-week", response_model=TripCountResponse)
async def count_current_week(
    current_user: AuthenticatedUser = Depends(require_role([UserRole.COMPANY])),
    company: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Trips of the company started this calendar week (Monday to Sunday)."""
    return TripCountResponse(count=await service.count_current_week(company.company_id))


@router.get("/count/last-week", response_model=TripCountResponse)
async def count_last_week(
    current_user: AuthenticatedUser = Depends(require_role([UserRole.COMPANY])),
    company: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Trips of the company started in the previous calendar week."""
    return TripCountResponse(count=await service.count_previous_week(company.company_id))


@router.get("/count/by-driver", response_model=TripCountResponse)
async def count_by_driver(
    driver_id: Optional[int] = Query(None, description="Driver ID (company accounts)"),
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Number of trips of one driver within the caller's company. Drivers can only count their own."""
    if not current_user.is_company:
        driver_id = current_user.user_id
    elif driver_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="driver_id is required"
        )
    count = await service.count_by_driver(driver_id, company_id=current_user.company_id)
    return TripCountResponse(count=count)


@router.get("/routes", response_model=RouteListResponse)
async def list_routes(
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Distinct '<origin> - <destination>' routes, for report filters."""
    if current_user.is_company:
        routes = await service.unique_destinations_by_company(current_user.company_id)
    else:
        routes = await service.unique_destinations_by_driver(current_user.user_id)
    return RouteListResponse(routes=sorted(routes))


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    trip = await _load_scoped(service, trip_id, current_user)
    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_data: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """
    Partially update a trip (status, end date, ...).

    Sending input_conduct re-runs the conduct prediction.
    """
    await _load_scoped(service, trip_id, current_user)

    if not current_user.is_company and trip_data.user_id not in (None, current_user.user_id):
        raise InsufficientPermissionsError("Drivers cannot reassign trips")

    trip = await service.update(trip_id, trip_data)
    return TripResponse.model_validate(trip)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: AuthenticatedUser = Depends(require_role([UserRole.COMPANY])),
    service: TripService = Depends(get_trip_service)
):
    """Administrative delete of a trip and its alerts (company accounts only)."""
    await _load_scoped(service, trip_id, current_user)
    await service.delete(trip_id)


@router.post("/{trip_id}/alerts", response_model=AlertDetailResponse, status_code=status.HTTP_201_CREATED)
async def record_alert(
    alert_data: AlertDetailCreate,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Append an alert to an open trip."""
    await _load_scoped(service, trip_id, current_user)
    detail = await service.record_alert(trip_id, alert_data)
    return AlertDetailResponse.model_validate(detail)


@router.post("/{trip_id}/alerts/{alert_id}/respond", response_model=AlertDetailResponse)
async def respond_alert(
    trip_id: int = Path(..., description="Trip ID"),
    alert_id: int = Path(..., description="Alert ID"),
    current_user: AuthenticatedUser = Depends(get_current_company),
    service: TripService = Depends(get_trip_service)
):
    """Mark an alert of the trip as responded."""
    await _load_scoped(service, trip_id, current_user)
    detail = await service.respond_alert(trip_id, alert_id)
    return AlertDetailResponse.model_validate(detail)
