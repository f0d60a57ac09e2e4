"""
Trip schemas.

Request bodies for trip creation / update and the response shapes of the
trip endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from backend.app.models.trip_enums import TripStatus, TripConduct


class TripCreate(BaseModel):
    """Schema for trip creation."""
    # Filled from the authenticated tenant by the endpoint
    company_id: Optional[int] = None
    # Driver; defaults to the caller when a driver creates the trip
    user_id: Optional[int] = None
    origin_city_id: int = Field(..., gt=0)
    destination_city_id: int = Field(..., gt=0)
    start_date: datetime
    # Forwarded verbatim to the conduct prediction service
    input_conduct: Optional[Dict[str, Any]] = None


class TripUpdate(BaseModel):
    """Schema for partial trip update. Only fields sent are applied."""
    status: Optional[TripStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    origin_city_id: Optional[int] = Field(None, gt=0)
    destination_city_id: Optional[int] = Field(None, gt=0)
    user_id: Optional[int] = None
    input_conduct: Optional[Dict[str, Any]] = None


class AlertDetailCreate(BaseModel):
    """Schema for recording an alert on a trip."""
    timestamp: datetime
    type: str = Field(..., min_length=1, max_length=100)
    responded: bool = False


class AlertDetailResponse(BaseModel):
    """Schema for alert detail response."""
    id: Optional[int]
    timestamp: datetime
    type: str
    responded: bool

    model_config = ConfigDict(from_attributes=True)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    company_id: int
    user_id: int
    origin_city_id: int
    destination_city_id: int
    origin_name: Optional[str] = None
    destination_name: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime]
    status: TripStatus
    conduct: TripConduct
    details: List[AlertDetailResponse] = []

    model_config = ConfigDict(from_attributes=True)


class TripSearchResult(TripResponse):
    """Trip returned by search, with alert counters derived from its details."""
    total_alerts: int
    responded_alerts: int


class TripCountResponse(BaseModel):
    count: int


class RouteListResponse(BaseModel):
    routes: List[str]
