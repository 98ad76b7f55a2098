"""Pytest configuration and fixtures for reservation service tests."""
from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from parking_reservations.api.router import init_router, router
from parking_reservations.auth import HeaderAuthProvider
from parking_reservations.detection.analyzer import OccupancyAnalyzer
from parking_reservations.detection.feeds import VideoFeedService
from parking_reservations.profiles import ProfileService
from parking_reservations.reservations.service import ReservationService
from parking_reservations.state.spot_registry import SpotRegistry
from parking_reservations.storage.repository import Repository, create_session_factory

# 10:30 local time on the day the tests consider "today"
FIXED_NOW = datetime(2026, 10, 16, 10, 30)
TODAY = "2026-10-16"
TOMORROW = "2026-10-17"
YESTERDAY = "2026-10-15"

DEMO_COMPLEXES = {"Demo Parking 1": 18, "Demo Parking 2": 24}


class FakeDetector:
    """Returns preset detections instead of running a model."""

    def __init__(self, detections=None):
        self.detections = detections or []
        self.calls = 0

    def detect_vehicles(self, image):
        self.calls += 1
        return list(self.detections)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def repository():
    """Fresh in-memory store per test."""
    return Repository(create_session_factory("sqlite://"))


@pytest.fixture
def registry(repository, clock):
    """Spot registry over the demo complexes."""
    spot_registry = SpotRegistry(repository, clock=clock)
    spot_registry.seed_demo_data(DEMO_COMPLEXES)
    return spot_registry


@pytest.fixture
def reservations(repository, clock, registry):
    return ReservationService(repository, clock=clock)


@pytest.fixture
def detector():
    return FakeDetector()


@pytest.fixture
def client(repository, registry, reservations, detector):
    """Test client for the API with the demo data loaded."""
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")

    init_router(
        reservation_service=reservations,
        spot_registry=registry,
        profile_service=ProfileService(repository),
        feed_service=VideoFeedService(repository),
        auth_provider=HeaderAuthProvider("X-User-Id"),
        analyzer=OccupancyAnalyzer(detector, min_overlap=0.3),
    )

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_reservation():
    """Reservation form for a spot that exists in the demo data."""
    return {
        "spot_id": "A02",
        "parking_complex": "Demo Parking 1",
        "vehicle_plate": "ABC123",
        "date": TOMORROW,
        "time": "09:00",
        "duration": "2 hours",
    }
