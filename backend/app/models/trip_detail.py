"""
Trip alert detail database model.

Alerts are appended while a trip is active and never removed on their own;
they go away only with their trip.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from backend.app.db.session import Base


class TripDetail(Base):
    """Alert raised during a trip, optionally acknowledged by the driver."""
    __tablename__ = "trip_details"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)

    timestamp = Column(DateTime(timezone=True), nullable=False)
    type = Column(String(100), nullable=False)
    responded = Column(Boolean, default=False, nullable=False)

    trip = relationship("Trip", back_populates="details")

    def __repr__(self):
        return f"<TripDetail(id={self.id}, trip_id={self.trip_id}, type='{self.type}', responded={self.responded})>"
