"""State management module."""

from .models import (
    ParkingSpot,
    Reservation,
    ReservationStatus,
    ReservationView,
    SpotStatus,
)

__all__ = [
    "ParkingSpot",
    "Reservation",
    "ReservationStatus",
    "ReservationView",
    "SpotStatus",
]
