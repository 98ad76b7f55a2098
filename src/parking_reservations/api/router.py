"""
FastAPI route definitions.

Handlers that touch the store are plain functions; FastAPI runs them in its
threadpool so blocking database calls stay off the event loop.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response

from ..auth import AuthProvider
from ..detection.analyzer import OccupancyAnalyzer
from ..detection.feeds import VideoFeedService
from ..exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    ParkingError,
    ReservationValidationError,
    StoreError,
)
from ..metrics import get_metrics
from ..profiles import ProfileService
from ..reservations.service import ReservationRequest, ReservationService
from ..state.models import (
    ComplexSummary,
    DashboardStats,
    ParkingSpot,
    Profile,
    ReservationStatus,
    ReservationView,
    SpotDefinition,
    VideoFeed,
)
from ..state.spot_registry import SpotRegistry
from .schemas import (
    ComplexCreate,
    CVRequest,
    CVResponse,
    HealthResponse,
    MessageResponse,
    ProfileUpdate,
    SpotCreate,
    SpotStatusUpdate,
    VideoFeedCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependencies injected at startup
_reservations: Optional[ReservationService] = None
_registry: Optional[SpotRegistry] = None
_profiles: Optional[ProfileService] = None
_feeds: Optional[VideoFeedService] = None
_auth: Optional[AuthProvider] = None
_analyzer: Optional[OccupancyAnalyzer] = None
_start_time: datetime = datetime.now()


def init_router(
    reservation_service: ReservationService,
    spot_registry: SpotRegistry,
    profile_service: ProfileService,
    feed_service: VideoFeedService,
    auth_provider: AuthProvider,
    analyzer: Optional[OccupancyAnalyzer] = None,
) -> None:
    """
    Initialize router with dependencies.

    Args:
        reservation_service: Reservation flow and reads
        spot_registry: Spot status and complexes
        profile_service: User profiles
        feed_service: Video feeds and spot definitions
        auth_provider: Current-user lookup
        analyzer: Occupancy analyzer, None when detection is disabled
    """
    global _reservations, _registry, _profiles, _feeds, _auth, _analyzer, _start_time

    _reservations = reservation_service
    _registry = spot_registry
    _profiles = profile_service
    _feeds = feed_service
    _auth = auth_provider
    _analyzer = analyzer
    _start_time = datetime.now()

    logger.info("API router initialized")


def _require_services() -> None:
    if _reservations is None or _registry is None:
        raise HTTPException(status_code=503, detail="Service not initialized")


def _to_http(error: ParkingError, action: str) -> HTTPException:
    """Map a domain error to the HTTP error shown to the user."""
    if isinstance(error, ReservationValidationError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, NotAuthenticatedError):
        return HTTPException(status_code=401, detail=error.message)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, StoreError):
        logger.error(f"Failed to {action}: {error}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")


def _user_id(request: Request) -> Optional[str]:
    return _auth.current_user_id(request) if _auth else None


def _require_user(request: Request) -> str:
    user_id = _user_id(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="You need to log in first")
    return user_id


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    uptime = (datetime.now() - _start_time).total_seconds()

    store_connected = False
    if _registry is not None:
        try:
            _registry.repository.count_spots()
            store_connected = True
        except StoreError as e:
            logger.error(f"Store health check failed: {e}")

    return HealthResponse(
        status="healthy" if store_connected else "degraded",
        store_connected=store_connected,
        detection_enabled=_analyzer is not None,
        uptime_seconds=uptime,
    )


# Complexes and spots


@router.get("/complexes", response_model=list[ComplexSummary])
def list_complexes() -> list[ComplexSummary]:
    _require_services()
    try:
        return _registry.list_complexes()
    except ParkingError as e:
        raise _to_http(e, "load parking complexes")


@router.post("/complexes", response_model=ComplexSummary, status_code=201)
def add_complex(body: ComplexCreate) -> ComplexSummary:
    """Add a parking complex with its default spots."""
    _require_services()
    try:
        return _registry.add_complex(body.name, body.spot_count)
    except ParkingError as e:
        raise _to_http(e, "add parking complex")


@router.delete("/complexes/{name}", response_model=MessageResponse)
def delete_complex(name: str) -> MessageResponse:
    """Delete a complex together with its spots and reservations."""
    _require_services()
    try:
        _registry.delete_complex(name)
    except ParkingError as e:
        raise _to_http(e, "delete parking complex")
    return MessageResponse(success=True, message="Parking complex deleted successfully")


@router.get("/complexes/{name}/spots", response_model=list[ParkingSpot])
def complex_spots(name: str) -> list[ParkingSpot]:
    """Spot grid for one complex."""
    _require_services()
    try:
        spots = _registry.list_spots(name)
    except ParkingError as e:
        raise _to_http(e, "load parking spots")
    if not spots:
        raise HTTPException(status_code=404, detail=f"Parking complex '{name}' not found")
    return spots


@router.get("/spots", response_model=list[ParkingSpot])
def list_spots(parking_complex: Optional[str] = None) -> list[ParkingSpot]:
    _require_services()
    try:
        return _registry.list_spots(parking_complex)
    except ParkingError as e:
        raise _to_http(e, "load parking spots")


@router.post("/spots", response_model=ParkingSpot, status_code=201)
def add_spot(body: SpotCreate) -> ParkingSpot:
    _require_services()
    try:
        return _registry.add_spot(body.parking_complex, body.spot_id, body.status)
    except ParkingError as e:
        raise _to_http(e, "add parking spot")


@router.patch("/spots/{parking_complex}/{spot_id}", response_model=ParkingSpot)
def update_spot_status(parking_complex: str, spot_id: str, body: SpotStatusUpdate) -> ParkingSpot:
    """Overwrite a spot's status (last writer wins)."""
    _require_services()
    try:
        _registry.set_status(parking_complex, spot_id, body.status, source="admin")
        return _registry.get_spot(parking_complex, spot_id)
    except ParkingError as e:
        raise _to_http(e, "update spot status")


@router.delete("/spots/{parking_complex}/{spot_id}", response_model=MessageResponse)
def delete_spot(parking_complex: str, spot_id: str) -> MessageResponse:
    _require_services()
    try:
        _registry.delete_spot(parking_complex, spot_id)
    except ParkingError as e:
        raise _to_http(e, "delete parking spot")
    return MessageResponse(success=True, message="Parking spot deleted successfully")


# Reservations


@router.post("/reservations", response_model=ReservationView, status_code=201)
def create_reservation(body: ReservationRequest, request: Request) -> ReservationView:
    """
    Reserve a spot for the logged-in user.

    The user is looked up when the form is submitted; the spot is marked
    reserved in the same transaction as the reservation insert.
    """
    _require_services()
    try:
        return _reservations.create(body, _user_id(request))
    except ParkingError as e:
        raise _to_http(e, "create reservation")


@router.get("/reservations/me", response_model=list[ReservationView])
def my_reservations(
    request: Request,
    status: Optional[ReservationStatus] = None,
) -> list[ReservationView]:
    """The caller's reservations with freshly derived statuses."""
    _require_services()
    user_id = _require_user(request)
    try:
        return _reservations.list_for_user(user_id, status)
    except ParkingError as e:
        raise _to_http(e, "load reservations")


@router.get("/reservations/{reservation_id}", response_model=ReservationView)
def get_reservation(reservation_id: str, request: Request) -> ReservationView:
    """One of the caller's reservations; other users' reservations are 404."""
    _require_services()
    user_id = _require_user(request)
    try:
        return _reservations.get(reservation_id, user_id=user_id)
    except ParkingError as e:
        raise _to_http(e, "load reservation")


@router.delete("/reservations/{reservation_id}", response_model=MessageResponse)
def cancel_reservation(reservation_id: str, request: Request) -> MessageResponse:
    """Cancel one of the caller's reservations and release the spot."""
    _require_services()
    user_id = _require_user(request)
    try:
        _reservations.cancel(reservation_id, user_id=user_id)
    except ParkingError as e:
        raise _to_http(e, "cancel reservation")
    return MessageResponse(success=True, message="Reservation cancelled successfully")


# Admin


@router.get("/admin/reservations", response_model=list[ReservationView])
def all_reservations(status: Optional[ReservationStatus] = None) -> list[ReservationView]:
    _require_services()
    try:
        return _reservations.list_all(status)
    except ParkingError as e:
        raise _to_http(e, "load reservations")


@router.delete("/admin/reservations/{reservation_id}", response_model=MessageResponse)
def admin_cancel_reservation(reservation_id: str) -> MessageResponse:
    _require_services()
    try:
        _reservations.cancel(reservation_id)
    except ParkingError as e:
        raise _to_http(e, "cancel reservation")
    return MessageResponse(success=True, message="Reservation cancelled successfully")


@router.get("/admin/dashboard", response_model=DashboardStats)
def dashboard() -> DashboardStats:
    _require_services()
    try:
        return _registry.dashboard_stats()
    except ParkingError as e:
        raise _to_http(e, "load dashboard stats")


# Profile


@router.get("/profile", response_model=Profile)
def get_profile(request: Request) -> Profile:
    if _profiles is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    user_id = _require_user(request)
    try:
        return _profiles.get(user_id)
    except ParkingError as e:
        raise _to_http(e, "load profile")


@router.put("/profile", response_model=Profile)
def update_profile(body: ProfileUpdate, request: Request) -> Profile:
    if _profiles is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    user_id = _require_user(request)
    try:
        return _profiles.update(
            user_id,
            email=body.email,
            name=body.name,
            vehicle_plate=body.vehicle_plate,
        )
    except ParkingError as e:
        raise _to_http(e, "update profile")


# Video feeds


@router.get("/video-feeds", response_model=list[VideoFeed])
def list_video_feeds() -> list[VideoFeed]:
    if _feeds is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    try:
        return _feeds.list_feeds()
    except ParkingError as e:
        raise _to_http(e, "load video feeds")


@router.post("/video-feeds", response_model=VideoFeed, status_code=201)
def add_video_feed(body: VideoFeedCreate) -> VideoFeed:
    if _feeds is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    try:
        return _feeds.add_feed(body.name, body.url, body.parking_complex)
    except ParkingError as e:
        raise _to_http(e, "add video feed")


@router.delete("/video-feeds/{feed_id}", response_model=MessageResponse)
def delete_video_feed(feed_id: str) -> MessageResponse:
    if _feeds is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    try:
        _feeds.delete_feed(feed_id)
    except ParkingError as e:
        raise _to_http(e, "delete video feed")
    return MessageResponse(success=True, message="Video feed deleted successfully")


@router.get("/video-feeds/{feed_id}/spot-definitions", response_model=list[SpotDefinition])
def list_spot_definitions(feed_id: str) -> list[SpotDefinition]:
    if _feeds is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    try:
        return _feeds.list_definitions(feed_id)
    except ParkingError as e:
        raise _to_http(e, "load spot definitions")


@router.put("/video-feeds/{feed_id}/spot-definitions", response_model=list[SpotDefinition])
def save_spot_definitions(feed_id: str, definitions: list[SpotDefinition]) -> list[SpotDefinition]:
    if _feeds is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    try:
        return _feeds.save_definitions(feed_id, definitions)
    except ParkingError as e:
        raise _to_http(e, "save spot definitions")


@router.post("/cv/process", response_model=CVResponse)
def process_frame(body: CVRequest) -> CVResponse:
    """
    Occupancy analysis entry point.

    Actions:
    - analyze_frame: analyze video_frame against spot_definitions and
      write the resulting occupied/available statuses to the spots
    - start_monitoring: acknowledge a monitoring request for feed_id
    """
    _require_services()

    if body.action == "start_monitoring":
        logger.info(f"Starting monitoring for feed: {body.feed_id}")
        return CVResponse(success=True, message="Monitoring started")

    if body.action != "analyze_frame":
        raise HTTPException(status_code=400, detail="Unknown action")

    if _analyzer is None:
        raise HTTPException(status_code=503, detail="Occupancy detection is disabled")
    if not body.video_frame:
        raise HTTPException(status_code=400, detail="video_frame is required")

    try:
        results = _analyzer.analyze(body.video_frame, body.spot_definitions)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Frame analysis failed: {e}")
        raise HTTPException(status_code=500, detail=f"Frame analysis failed: {e}")

    try:
        _registry.apply_occupancy(results)
    except ParkingError as e:
        raise _to_http(e, "update spot statuses")

    return CVResponse(success=True, results=results)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=get_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
