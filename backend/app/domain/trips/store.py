"""
Trip Store (Persistence Boundary).

TripStore is the repository interface the trip domain depends on.
SqlAlchemyTripStore implements it on top of an AsyncSession; every write is a
single commit. After a rollback, constraint violations surface as
InvalidTripError and every other storage error as PersistenceError.
"""

import abc
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Set

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, joinedload, selectinload

from backend.app.core.exceptions import InvalidTripError, PersistenceError, ResourceNotFoundError
from backend.app.domain.trips.records import (
    AlertDetailRecord, TripCriteria, TripRecord, ROUTE_SEPARATOR,
)
from backend.app.models.city import City
from backend.app.models.trip import Trip
from backend.app.models.trip_detail import TripDetail
from backend.app.models.user import User

logger = logging.getLogger(__name__)


class TripStore(abc.ABC):
    """Repository interface over trips and their joined city / alert data."""

    @abc.abstractmethod
    async def save(self, trip: TripRecord) -> TripRecord:
        """Insert when trip.id is None, otherwise overwrite the stored row."""

    @abc.abstractmethod
    async def find_by_id(self, trip_id: int) -> Optional[TripRecord]:
        ...

    @abc.abstractmethod
    async def find_by_filter(self, criteria: TripCriteria) -> List[TripRecord]:
        ...

    @abc.abstractmethod
    async def count(self, criteria: TripCriteria) -> int:
        ...

    @abc.abstractmethod
    async def delete(self, trip_id: int) -> bool:
        """Remove the trip and its details. Returns False if nothing matched."""

    @abc.abstractmethod
    async def distinct_routes(self, criteria: TripCriteria) -> Set[str]:
        """Distinct "<origin> - <destination>" names of the matching trips."""

    @abc.abstractmethod
    async def is_company_driver(self, user_id: int, company_id: int) -> bool:
        """True when the user exists and belongs to the company."""

    @abc.abstractmethod
    async def add_alert(self, trip_id: int, alert: AlertDetailRecord) -> AlertDetailRecord:
        ...

    @abc.abstractmethod
    async def mark_alert_responded(self, trip_id: int, alert_id: int) -> Optional[AlertDetailRecord]:
        ...


def _detail_record(detail: TripDetail) -> AlertDetailRecord:
    return AlertDetailRecord(
        id=detail.id,
        timestamp=detail.timestamp,
        type=detail.type,
        responded=detail.responded,
    )


def _trip_record(trip: Trip) -> TripRecord:
    return TripRecord(
        id=trip.id,
        company_id=trip.company_id,
        user_id=trip.user_id,
        origin_city_id=trip.origin_id,
        destination_city_id=trip.destination_id,
        start_date=trip.start_date,
        end_date=trip.end_date,
        status=trip.status,
        conduct=trip.conduct,
        details=tuple(_detail_record(d) for d in trip.details),
        origin_name=trip.origin.name if trip.origin is not None else None,
        destination_name=trip.destination.name if trip.destination is not None else None,
    )


class SqlAlchemyTripStore(TripStore):
    """TripStore backed by the application database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except IntegrityError as exc:
            # Unknown city or driver id, rejected by a foreign key
            await self.db.rollback()
            logger.warning("Trip store %s rejected by a constraint: %s", operation, exc.orig)
            raise InvalidTripError(
                "The trip references a city or driver that does not exist",
                details={"operation": operation},
            ) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Trip store %s failed: %s", operation, exc)
            raise PersistenceError(operation) from exc

    def _load_options(self):
        return (
            joinedload(Trip.origin),
            joinedload(Trip.destination),
            selectinload(Trip.details),
        )

    def _filtered(self, stmt, criteria: TripCriteria):
        """Apply criteria to a statement selecting from trips."""
        if criteria.company_id is not None:
            stmt = stmt.where(Trip.company_id == criteria.company_id)
        if criteria.user_id is not None:
            stmt = stmt.where(Trip.user_id == criteria.user_id)
        if criteria.start_from is not None:
            stmt = stmt.where(Trip.start_date >= criteria.start_from)
        if criteria.start_to is not None:
            stmt = stmt.where(Trip.start_date <= criteria.start_to)
        if criteria.status is not None:
            stmt = stmt.where(Trip.status == criteria.status)
        if criteria.route_contains:
            origin = aliased(City)
            destination = aliased(City)
            route = origin.name + ROUTE_SEPARATOR + destination.name
            stmt = (
                stmt.join(origin, Trip.origin_id == origin.id)
                .join(destination, Trip.destination_id == destination.id)
                .where(route.icontains(criteria.route_contains, autoescape=True))
            )
        return stmt

    async def _get_row(self, trip_id: int) -> Optional[Trip]:
        result = await self.db.execute(
            select(Trip)
            .options(*self._load_options())
            .where(Trip.id == trip_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save(self, trip: TripRecord) -> TripRecord:
        async with self._guard("save"):
            if trip.id is None:
                row = Trip(
                    company_id=trip.company_id,
                    user_id=trip.user_id,
                    origin_id=trip.origin_city_id,
                    destination_id=trip.destination_city_id,
                    start_date=trip.start_date,
                    end_date=trip.end_date,
                    status=trip.status,
                    conduct=trip.conduct,
                    details=[
                        TripDetail(timestamp=d.timestamp, type=d.type, responded=d.responded)
                        for d in trip.details
                    ],
                )
                self.db.add(row)
            else:
                row = await self.db.get(Trip, trip.id)
                if row is None:
                    raise ResourceNotFoundError("Trip", trip.id)
                # company_id is never rewritten
                row.user_id = trip.user_id
                row.origin_id = trip.origin_city_id
                row.destination_id = trip.destination_city_id
                row.start_date = trip.start_date
                row.end_date = trip.end_date
                row.status = trip.status
                row.conduct = trip.conduct

            await self.db.commit()
            saved = await self._get_row(row.id)

        return _trip_record(saved)

    async def find_by_id(self, trip_id: int) -> Optional[TripRecord]:
        async with self._guard("find_by_id"):
            row = await self._get_row(trip_id)
        return _trip_record(row) if row is not None else None

    async def find_by_filter(self, criteria: TripCriteria) -> List[TripRecord]:
        stmt = self._filtered(select(Trip).options(*self._load_options()), criteria)
        order = Trip.start_date.desc() if criteria.newest_first else Trip.start_date.asc()
        stmt = stmt.order_by(order, Trip.id.desc()).execution_options(populate_existing=True)

        async with self._guard("find_by_filter"):
            result = await self.db.execute(stmt)
            rows = result.unique().scalars().all()

        return [_trip_record(row) for row in rows]

    async def count(self, criteria: TripCriteria) -> int:
        stmt = self._filtered(select(func.count(Trip.id)).select_from(Trip), criteria)
        async with self._guard("count"):
            return (await self.db.execute(stmt)).scalar() or 0

    async def delete(self, trip_id: int) -> bool:
        async with self._guard("delete"):
            await self.db.execute(delete(TripDetail).where(TripDetail.trip_id == trip_id))
            result = await self.db.execute(delete(Trip).where(Trip.id == trip_id))
            if result.rowcount == 0:
                await self.db.rollback()
                return False
            await self.db.commit()
        return True

    async def distinct_routes(self, criteria: TripCriteria) -> Set[str]:
        origin = aliased(City)
        destination = aliased(City)
        route = (origin.name + ROUTE_SEPARATOR + destination.name).label("route")
        stmt = (
            select(route)
            .select_from(Trip)
            .join(origin, Trip.origin_id == origin.id)
            .join(destination, Trip.destination_id == destination.id)
            .distinct()
        )
        # The route filter is not meaningful here
        stmt = self._filtered(stmt, TripCriteria(
            company_id=criteria.company_id,
            user_id=criteria.user_id,
            start_from=criteria.start_from,
            start_to=criteria.start_to,
            status=criteria.status,
        ))

        async with self._guard("distinct_routes"):
            result = await self.db.execute(stmt)
            return set(result.scalars().all())

    async def is_company_driver(self, user_id: int, company_id: int) -> bool:
        stmt = select(func.count(User.id)).where(User.id == user_id, User.company_id == company_id)
        async with self._guard("is_company_driver"):
            return bool((await self.db.execute(stmt)).scalar())

    async def add_alert(self, trip_id: int, alert: AlertDetailRecord) -> AlertDetailRecord:
        async with self._guard("add_alert"):
            if await self.db.get(Trip, trip_id) is None:
                raise ResourceNotFoundError("Trip", trip_id)
            detail = TripDetail(
                trip_id=trip_id,
                timestamp=alert.timestamp,
                type=alert.type,
                responded=alert.responded,
            )
            self.db.add(detail)
            await self.db.commit()
        return _detail_record(detail)

    async def mark_alert_responded(self, trip_id: int, alert_id: int) -> Optional[AlertDetailRecord]:
        async with self._guard("mark_alert_responded"):
            result = await self.db.execute(
                select(TripDetail).where(
                    TripDetail.id == alert_id,
                    TripDetail.trip_id == trip_id,
                )
            )
            detail = result.scalar_one_or_none()
            if detail is None:
                return None
            detail.responded = True
            await self.db.commit()
        return _detail_record(detail)
