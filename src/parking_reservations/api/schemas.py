"""API request and response schemas."""

from typing import Optional

from pydantic import BaseModel

from ..state.models import OccupancyResult, SpotDefinition, SpotStatus


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    store_connected: bool
    detection_enabled: bool
    uptime_seconds: float


class ComplexCreate(BaseModel):
    """New parking complex."""

    name: str
    spot_count: Optional[int] = None


class SpotCreate(BaseModel):
    """New parking spot."""

    parking_complex: str
    spot_id: str
    status: SpotStatus = SpotStatus.AVAILABLE


class SpotStatusUpdate(BaseModel):
    """Spot status overwrite."""

    status: SpotStatus


class ProfileUpdate(BaseModel):
    """Profile fields to change; omitted fields are kept."""

    email: Optional[str] = None
    name: Optional[str] = None
    vehicle_plate: Optional[str] = None


class VideoFeedCreate(BaseModel):
    """New video feed."""

    name: str
    url: str
    parking_complex: str


class CVRequest(BaseModel):
    """Frame processing request."""

    action: str
    video_frame: Optional[str] = None
    spot_definitions: list[SpotDefinition] = []
    feed_id: Optional[str] = None


class CVResponse(BaseModel):
    """Frame processing response."""

    success: bool
    results: list[OccupancyResult] = []
    message: Optional[str] = None


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    success: bool
    message: str
