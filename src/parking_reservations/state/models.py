"""Data models for parking spots, reservations and related records."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SpotStatus(str, Enum):
    """Status of a parking spot."""

    AVAILABLE = "available"
    RESERVED = "reserved"
    OCCUPIED = "occupied"


class ReservationStatus(str, Enum):
    """Lifecycle stage of a reservation, derived from date/time/duration."""

    UPCOMING = "upcoming"
    LIVE = "live"
    PAST = "past"


class ParkingSpot(BaseModel):
    """A reservable space within a parking complex."""

    id: str
    parking_complex: str
    spot_id: str
    status: SpotStatus
    created_at: datetime
    updated_at: datetime


class Reservation(BaseModel):
    """A stored reservation; status is None when it cannot be derived."""

    id: str
    user_id: str
    parking_complex: str
    spot_id: str
    vehicle_plate: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM, legacy rows may hold h:mm AM/PM
    duration: str
    status: Optional[ReservationStatus] = None
    created_at: datetime


class ReservationView(Reservation):
    """Reservation with its status recomputed for display."""

    remaining_time: str = ""


class Profile(BaseModel):
    """User profile kept alongside the auth service's account."""

    id: str
    email: str
    name: Optional[str] = None
    vehicle_plate: Optional[str] = None


class VideoFeed(BaseModel):
    """Camera feed watching a parking complex."""

    id: str
    name: str
    url: str
    parking_complex: str
    is_active: bool = True


class SpotDefinition(BaseModel):
    """Spot region on a video feed, in percent of frame width/height."""

    id: Optional[str] = None
    video_feed_id: Optional[str] = None
    spot_id: str
    parking_complex: str
    x: float
    y: float
    width: float
    height: float


class OccupancyResult(BaseModel):
    """Per-spot outcome of a frame analysis."""

    spot_id: str
    parking_complex: str
    occupied: bool
    confidence: float


class ComplexSummary(BaseModel):
    """A parking complex and how many spots it has."""

    name: str
    spot_count: int


class DashboardStats(BaseModel):
    """Admin dashboard counters."""

    total_complexes: int
    total_spots: int
    available_spots: int
    reserved_spots: int
    occupied_spots: int
    total_reservations: int
    active_reservations: int
