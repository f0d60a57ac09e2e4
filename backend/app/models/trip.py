"""
Trip database model.

A trip carries a driver from an origin city to a destination city and
collects alert details while it is on the road.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus, TripConduct


class Trip(Base):
    """
    Trip model.

    Alert counters are derived from the details on read, never stored.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Tenant - immutable after creation
    company_id = Column(Integer, nullable=False, index=True)

    # Driver
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Route
    origin_id = Column(Integer, ForeignKey('cities.id'), nullable=False, index=True)
    destination_id = Column(Integer, ForeignKey('cities.id'), nullable=False, index=True)

    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(Enum(TripStatus), default=TripStatus.CREATED, nullable=False, index=True)
    conduct = Column(Enum(TripConduct), default=TripConduct.UNKNOWN, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    origin = relationship("City", foreign_keys=[origin_id], lazy="raise")
    destination = relationship("City", foreign_keys=[destination_id], lazy="raise")
    user = relationship("User", lazy="raise")
    details = relationship(
        "TripDetail",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="TripDetail.timestamp",
        lazy="raise",
    )

    def __repr__(self):
        return f"<Trip(id={self.id}, company_id={self.company_id}, status='{self.status.value}')>"
