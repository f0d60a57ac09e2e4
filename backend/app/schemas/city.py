"""
City schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class CityCreate(BaseModel):
    """Schema for city creation."""
    name: str = Field(..., min_length=1, max_length=200)


class CityUpdate(BaseModel):
    """Schema for city update."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class CityResponse(BaseModel):
    """Schema for city response."""
    id: int
    name: str
    company_id: int

    model_config = ConfigDict(from_attributes=True)
