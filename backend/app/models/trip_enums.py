"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    CREATED = "CREATED"  # Registered, driver has not left yet
    IN_PROGRESS = "IN_PROGRESS"  # Driver is on the road
    COMPLETED = "COMPLETED"  # Arrived, end_date set
    CANCELLED = "CANCELLED"  # Trip cancelled


class TripConduct(str, enum.Enum):
    """Driving conduct label attached to a trip."""
    NORMAL = "NORMAL"
    AGGRESSIVE = "AGGRESSIVE"
    UNKNOWN = "UNKNOWN"  # Prediction service unavailable or unusable answer
