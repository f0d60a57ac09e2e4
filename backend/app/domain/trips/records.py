"""
Trip Records (Domain Types).

Immutable views of persisted trips plus the typed criteria used to query them.
The store converts ORM rows into these records so domain code never holds a
live session object.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from backend.app.models.trip_enums import TripStatus, TripConduct

ROUTE_SEPARATOR = " - "


def route_label(origin_name: str, destination_name: str) -> str:
    return f"{origin_name}{ROUTE_SEPARATOR}{destination_name}"


@dataclass(frozen=True)
class AlertDetailRecord:
    timestamp: datetime
    type: str
    responded: bool = False
    id: Optional[int] = None


@dataclass(frozen=True)
class TripRecord:
    """A trip as stored, with the names of its cities when they were loaded."""
    company_id: int
    user_id: int
    origin_city_id: int
    destination_city_id: int
    start_date: datetime
    status: TripStatus = TripStatus.CREATED
    conduct: TripConduct = TripConduct.UNKNOWN
    end_date: Optional[datetime] = None
    details: Tuple[AlertDetailRecord, ...] = ()
    origin_name: Optional[str] = None
    destination_name: Optional[str] = None
    id: Optional[int] = None

    @property
    def route(self) -> Optional[str]:
        if self.origin_name is None or self.destination_name is None:
            return None
        return route_label(self.origin_name, self.destination_name)


@dataclass(frozen=True)
class DecoratedTrip:
    """Search result: the stored trip plus alert counters derived from its details."""
    trip: TripRecord
    total_alerts: int
    responded_alerts: int


@dataclass(frozen=True)
class TripFilters:
    """
    Optional search filters, combined with AND.

    date_from / date_to: start_date range, both ends inclusive
    driver: exact driver id
    destination: case-insensitive substring of "<origin> - <destination>"
    status: exact status
    """
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    driver: Optional[int] = None
    destination: Optional[str] = None
    status: Optional[TripStatus] = None


@dataclass(frozen=True)
class TripCriteria:
    """Store-level predicate. Every field left as None is not applied."""
    company_id: Optional[int] = None
    user_id: Optional[int] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None
    route_contains: Optional[str] = None
    status: Optional[TripStatus] = None
    newest_first: bool = field(default=True, compare=False)
