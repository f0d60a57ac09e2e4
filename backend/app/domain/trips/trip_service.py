"""
Trip Service (Domain Logic).

Orchestrates the trip lifecycle: creation with conduct classification,
partial updates, reporting counts, route summaries and search.

Classification never decides whether a write happens. Whatever the
prediction service does, the trip is stored with one of the three conduct
labels; storage failures on the other hand propagate to the caller.
"""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from backend.app.core.exceptions import InvalidTripError, ResourceNotFoundError
from backend.app.domain.trips.classifier import ConductClassifier
from backend.app.domain.trips.records import (
    AlertDetailRecord, DecoratedTrip, TripCriteria, TripFilters, TripRecord,
)
from backend.app.domain.trips.search import TripSearchEngine
from backend.app.domain.trips.store import TripStore
from backend.app.domain.trips.weekly import WeeklyAggregator, utc_now
from backend.app.models.trip_enums import TripConduct, TripStatus
from backend.app.schemas.auth import AuthenticatedUser
from backend.app.schemas.trip import AlertDetailCreate, TripCreate, TripUpdate

logger = logging.getLogger(__name__)

# Patch fields that may be cleared by sending null
NULLABLE_FIELDS = {"end_date"}

CLOSED_STATUSES = {TripStatus.COMPLETED, TripStatus.CANCELLED}


def _as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def check_dates(start_date: datetime, end_date: Optional[datetime]) -> None:
    """Raise InvalidTripError when end_date precedes start_date."""
    if end_date is None:
        return
    if _as_utc_naive(end_date) < _as_utc_naive(start_date):
        raise InvalidTripError(
            "end_date must not be earlier than start_date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


class TripService:

    def __init__(
        self,
        store: TripStore,
        classifier: ConductClassifier,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.classifier = classifier
        self.weekly = WeeklyAggregator(store, clock)
        self.search_engine = TripSearchEngine(store)

    async def _resolve_conduct(self, payload: Dict[str, Any]) -> TripConduct:
        """
        Classify, mapping anything unusable to UNKNOWN.

        The classifier already absorbs its own failures; this also covers a
        classifier that raises or answers outside the enumeration.
        """
        try:
            conduct = await self.classifier.classify(payload)
        except Exception:
            logger.exception("Conduct classifier raised, storing %s", TripConduct.UNKNOWN.value)
            return TripConduct.UNKNOWN

        try:
            return TripConduct(conduct)
        except ValueError:
            logger.warning("Conduct classifier returned %r, storing %s", conduct, TripConduct.UNKNOWN.value)
            return TripConduct.UNKNOWN

    async def _check_driver(self, user_id: int, company_id: int) -> None:
        if not await self.store.is_company_driver(user_id, company_id):
            raise InvalidTripError(
                f"Driver {user_id} does not belong to company {company_id}",
                details={"user_id": user_id, "company_id": company_id},
            )

    async def create(self, data: TripCreate) -> TripRecord:
        """
        Create a trip in CREATED status.

        The classification input is data.input_conduct; without one the request
        itself is sent to the prediction service.
        """
        if data.company_id is None or data.user_id is None:
            raise InvalidTripError("A trip needs a company and a driver")
        await self._check_driver(data.user_id, data.company_id)

        payload = data.input_conduct
        if payload is None:
            payload = data.model_dump(mode="json", exclude={"input_conduct"})

        trip = TripRecord(
            company_id=data.company_id,
            user_id=data.user_id,
            origin_city_id=data.origin_city_id,
            destination_city_id=data.destination_city_id,
            start_date=data.start_date,
            status=TripStatus.CREATED,
            conduct=await self._resolve_conduct(payload),
        )

        saved = await self.store.save(trip)
        logger.info(
            "Trip %s created for company %s (driver %s, conduct %s)",
            saved.id, saved.company_id, saved.user_id, saved.conduct.value,
        )
        return saved

    async def update(self, trip_id: int, patch: TripUpdate) -> TripRecord:
        """
        Apply a partial update.

        A non-empty input_conduct re-runs classification before the other
        fields are merged. Fields absent from the patch keep their stored value.
        """
        current = await self.find_one(trip_id)

        changes = patch.model_dump(exclude_unset=True)
        payload = changes.pop("input_conduct", None)
        changes = {
            field: value for field, value in changes.items()
            if value is not None or field in NULLABLE_FIELDS
        }

        if "user_id" in changes:
            await self._check_driver(changes["user_id"], current.company_id)

        if payload:
            changes["conduct"] = await self._resolve_conduct(payload)

        updated = dataclasses.replace(current, **changes)
        check_dates(updated.start_date, updated.end_date)

        saved = await self.store.save(updated)
        logger.info("Trip %s updated: %s", trip_id, ", ".join(sorted(changes)) or "no changes")
        return saved

    async def find_one(self, trip_id: int) -> TripRecord:
        trip = await self.store.find_by_id(trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    async def delete(self, trip_id: int) -> None:
        """Administrative delete of a trip and its alert details."""
        if not await self.store.delete(trip_id):
            raise ResourceNotFoundError("Trip", trip_id)
        logger.info("Trip %s deleted", trip_id)

    # Listing and counts

    async def list_for_company(self, company_id: int) -> List[TripRecord]:
        """Every driver's trips of the company, newest first."""
        return await self.store.find_by_filter(TripCriteria(company_id=company_id))

    async def list_for_driver(self, user_id: int) -> List[TripRecord]:
        """Only the trips of one driver, newest first."""
        return await self.store.find_by_filter(TripCriteria(user_id=user_id))

    async def count_by_driver(self, user_id: int, company_id: Optional[int] = None) -> int:
        """Trips of one driver, restricted to company_id when given."""
        return await self.store.count(TripCriteria(company_id=company_id, user_id=user_id))

    async def count_current_week(self, company_id: int, now: Optional[datetime] = None) -> int:
        return await self.weekly.count_current_week(company_id, now)

    async def count_previous_week(self, company_id: int, now: Optional[datetime] = None) -> int:
        return await self.weekly.count_previous_week(company_id, now)

    # Reporting

    async def unique_destinations_by_company(self, company_id: int) -> Set[str]:
        return await self.store.distinct_routes(TripCriteria(company_id=company_id))

    async def unique_destinations_by_driver(self, user_id: int) -> Set[str]:
        return await self.store.distinct_routes(TripCriteria(user_id=user_id))

    async def search(self, actor: AuthenticatedUser, filters: TripFilters) -> List[DecoratedTrip]:
        return await self.search_engine.search(actor, filters)

    # Alerts

    async def record_alert(self, trip_id: int, alert: AlertDetailCreate) -> AlertDetailRecord:
        """Append an alert to a trip that has not been closed yet."""
        trip = await self.find_one(trip_id)
        if trip.status in CLOSED_STATUSES:
            raise InvalidTripError(
                f"Cannot record alerts on a {trip.status.value} trip",
                details={"trip_id": trip_id, "status": trip.status.value},
            )

        detail = await self.store.add_alert(trip_id, AlertDetailRecord(
            timestamp=alert.timestamp,
            type=alert.type,
            responded=alert.responded,
        ))
        logger.info("Alert %s (%s) recorded on trip %s", detail.id, detail.type, trip_id)
        return detail

    async def respond_alert(self, trip_id: int, alert_id: int) -> AlertDetailRecord:
        detail = await self.store.mark_alert_responded(trip_id, alert_id)
        if detail is None:
            raise ResourceNotFoundError("Alert", alert_id)
        return detail
