"""
City API Endpoints.

Cities are per-company reference data used as trip origins and destinations.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from backend.app.db.session import get_db
from backend.app.models.city import City
from backend.app.schemas.auth import AuthenticatedUser
from backend.app.schemas.city import CityCreate, CityUpdate, CityResponse
from backend.app.schemas.trip import TripCountResponse
from backend.app.core.guards import get_current_company

router = APIRouter(prefix="/cities", tags=["Cities"])


async def _get_company_city(db: AsyncSession, city_id: int, company_id: int) -> City:
    result = await db.execute(
        select(City).where(City.id == city_id, City.company_id == company_id)
    )
    city = result.scalar_one_or_none()

    if not city:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="City not found"
        )
    return city


@router.post("", response_model=CityResponse, status_code=status.HTTP_201_CREATED)
async def create_city(
    city_data: CityCreate,
    company: AuthenticatedUser = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    """Create a city owned by the caller's company."""
    city = City(name=city_data.name, company_id=company.company_id)
    db.add(city)
    await db.commit()
    await db.refresh(city)
    return city


@router.get("", response_model=List[CityResponse])
async def list_cities(
    company: AuthenticatedUser = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(City).where(City.company_id == company.company_id).order_by(City.name)
    )
    return result.scalars().all()


@router.get("/count/by-company", response_model=TripCountResponse)
async def count_cities(
    company: AuthenticatedUser = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    total = (await db.execute(
        select(func.count(City.id)).where(City.company_id == company.company_id)
    )).scalar() or 0
    return TripCountResponse(count=total)


@router.get("/{city_id}", response_model=CityResponse)
async def get_city(
    city_id: int = Path(..., description="City ID"),
    company: AuthenticatedUser = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    return await _get_company_city(db, city_id, company.company_id)


@router.patch("/{city_id}", response_model=CityResponse)
async def update_city(
    city_data: CityUpdate,
    city_id: int = Path(..., description="City ID"),
    company: AuthenticatedUser = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    city = await _get_company_city(db, city_id, company.company_id)

    update_data = city_data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(city, field, value)

    await db.commit()
    await db.refresh(city)
    return city


@router.delete("/{city_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_city(
    city_id: int = Path(..., description="City ID"),
    company: AuthenticatedUser = Depends(get_current_company),
    db: AsyncSession = Depends(get_db)
):
    city = await _get_company_city(db, city_id, company.company_id)
    await db.delete(city)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="City is referenced by trips"
        )
