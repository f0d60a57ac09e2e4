"""
Trip Search Engine.

Role-scoped, multi-filter trip search. Company accounts search every trip of
their tenant, anyone else only the trips they drove. Results come newest first
and carry alert counters derived from their details.
"""

from typing import List

from backend.app.domain.trips.records import (
    DecoratedTrip, TripCriteria, TripFilters, TripRecord,
)
from backend.app.domain.trips.store import TripStore
from backend.app.schemas.auth import AuthenticatedUser


def decorate(trip: TripRecord) -> DecoratedTrip:
    """Attach total / responded alert counts without touching the record."""
    return DecoratedTrip(
        trip=trip,
        total_alerts=len(trip.details),
        responded_alerts=sum(1 for detail in trip.details if detail.responded is True),
    )


def search_criteria(actor: AuthenticatedUser, filters: TripFilters) -> TripCriteria:
    """Translate actor scope plus filters into a store predicate."""
    if actor.is_company:
        company_id, user_id = actor.company_id, filters.driver
    else:
        company_id, user_id = None, actor.user_id

    return TripCriteria(
        company_id=company_id,
        user_id=user_id,
        start_from=filters.date_from,
        start_to=filters.date_to,
        route_contains=filters.destination or None,
        status=filters.status,
    )


class TripSearchEngine:

    def __init__(self, store: TripStore):
        self.store = store

    async def search(self, actor: AuthenticatedUser, filters: TripFilters) -> List[DecoratedTrip]:
        if actor.is_company and actor.company_id is None:
            return []
        if not actor.is_company and filters.driver not in (None, actor.user_id):
            # Driver scope AND another driver id can never match
            return []

        criteria = search_criteria(actor, filters)
        trips = await self.store.find_by_filter(criteria)
        return [decorate(trip) for trip in trips]
