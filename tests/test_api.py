"""Tests for the HTTP API."""
import base64
import inspect

import cv2
import numpy as np
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from parking_reservations.api.router import router
from parking_reservations.config import AppConfig, DatabaseConfig
from parking_reservations.detection.region_overlap import Detection
from parking_reservations.main import create_app

from .conftest import TODAY

USER = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}


class TestHealth:
    """GET /health."""

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store_connected"] is True
        assert data["detection_enabled"] is True


class TestComplexesAPI:
    """Complex and spot endpoints."""

    def test_list_complexes(self, client):
        response = client.get("/api/v1/complexes")
        assert response.status_code == 200
        assert {c["name"]: c["spot_count"] for c in response.json()} == {
            "Demo Parking 1": 18,
            "Demo Parking 2": 24,
        }

    def test_spot_grid(self, client):
        response = client.get("/api/v1/complexes/Demo Parking 1/spots")
        assert response.status_code == 200
        spots = response.json()
        assert len(spots) == 18
        assert spots[0]["spot_id"] == "A01"
        assert {s["status"] for s in spots} <= {"available", "reserved", "occupied"}

    def test_unknown_complex_grid(self, client):
        assert client.get("/api/v1/complexes/Nowhere/spots").status_code == 404

    def test_add_and_delete_complex(self, client):
        response = client.post("/api/v1/complexes", json={"name": "Harbour Garage"})
        assert response.status_code == 201
        assert response.json() == {"name": "Harbour Garage", "spot_count": 20}

        assert client.delete("/api/v1/complexes/Harbour Garage").status_code == 200
        assert client.get("/api/v1/spots", params={"parking_complex": "Harbour Garage"}).json() == []

    def test_blank_complex_name(self, client):
        response = client.post("/api/v1/complexes", json={"name": ""})
        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter a complex name"

    def test_update_spot_status(self, client):
        response = client.patch(
            "/api/v1/spots/Demo Parking 1/A02",
            json={"status": "occupied"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "occupied"

    def test_invalid_spot_status(self, client):
        response = client.patch("/api/v1/spots/Demo Parking 1/A02", json={"status": "broken"})
        assert response.status_code == 422

    def test_add_and_delete_spot(self, client):
        response = client.post(
            "/api/v1/spots",
            json={"parking_complex": "Demo Parking 1", "spot_id": "B01"},
        )
        assert response.status_code == 201
        assert response.json()["status"] == "available"
        assert client.delete("/api/v1/spots/Demo Parking 1/B01").status_code == 200
        assert client.delete("/api/v1/spots/Demo Parking 1/B01").status_code == 404


class TestReservationsAPI:
    """Reservation endpoints."""

    def test_create_reservation_reserves_spot(self, client, sample_reservation):
        response = client.post("/api/v1/reservations", json=sample_reservation, headers=USER)

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == "user-1"
        assert data["status"] == "upcoming"

        spots = client.get("/api/v1/complexes/Demo Parking 1/spots").json()
        assert next(s for s in spots if s["spot_id"] == "A02")["status"] == "reserved"

    def test_requires_login(self, client, sample_reservation):
        response = client.post("/api/v1/reservations", json=sample_reservation)
        assert response.status_code == 401
        assert client.get("/api/v1/admin/reservations").json() == []

    def test_validation_error_is_reported(self, client, sample_reservation):
        sample_reservation["vehicle_plate"] = ""
        response = client.post("/api/v1/reservations", json=sample_reservation, headers=USER)

        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter your vehicle plate number"

    def test_unknown_spot(self, client, sample_reservation):
        sample_reservation["spot_id"] = "Z99"
        response = client.post("/api/v1/reservations", json=sample_reservation, headers=USER)
        assert response.status_code == 404

    def test_my_reservations_with_status_filter(self, client, sample_reservation):
        client.post("/api/v1/reservations", json=sample_reservation, headers=USER)
        live = dict(sample_reservation, spot_id="A04", date=TODAY, time="10:00 AM")
        client.post("/api/v1/reservations", json=live, headers=USER)
        client.post("/api/v1/reservations", json=dict(sample_reservation, spot_id="A05"), headers=OTHER_USER)

        mine = client.get("/api/v1/reservations/me", headers=USER).json()
        assert len(mine) == 2

        live_only = client.get("/api/v1/reservations/me", params={"status": "live"}, headers=USER).json()
        assert [r["spot_id"] for r in live_only] == ["A04"]
        assert live_only[0]["time"] == "10:00"
        assert live_only[0]["remaining_time"] == "1h 30 min"

    def test_my_reservations_requires_login(self, client):
        assert client.get("/api/v1/reservations/me").status_code == 401

    def test_get_reservation(self, client, sample_reservation):
        created = client.post("/api/v1/reservations", json=sample_reservation, headers=USER).json()

        response = client.get(f"/api/v1/reservations/{created['id']}", headers=USER)
        assert response.status_code == 200
        assert response.json()["vehicle_plate"] == "ABC123"
        assert client.get("/api/v1/reservations/missing", headers=USER).status_code == 404

    def test_other_users_reservation_is_hidden(self, client, sample_reservation):
        created = client.post("/api/v1/reservations", json=sample_reservation, headers=USER).json()

        response = client.get(f"/api/v1/reservations/{created['id']}", headers=OTHER_USER)
        assert response.status_code == 404
        assert "ABC123" not in response.text
        assert client.get(f"/api/v1/reservations/{created['id']}").status_code == 401

    def test_cancel_own_reservation(self, client, sample_reservation):
        created = client.post("/api/v1/reservations", json=sample_reservation, headers=USER).json()

        assert client.delete(f"/api/v1/reservations/{created['id']}", headers=OTHER_USER).status_code == 404
        assert client.delete(f"/api/v1/reservations/{created['id']}", headers=USER).status_code == 200

        spots = client.get("/api/v1/complexes/Demo Parking 1/spots").json()
        assert next(s for s in spots if s["spot_id"] == "A02")["status"] == "available"

    def test_admin_list_and_cancel(self, client, sample_reservation):
        created = client.post("/api/v1/reservations", json=sample_reservation, headers=USER).json()

        upcoming = client.get("/api/v1/admin/reservations", params={"status": "upcoming"}).json()
        assert [r["id"] for r in upcoming] == [created["id"]]
        assert client.get("/api/v1/admin/reservations", params={"status": "past"}).json() == []

        assert client.delete(f"/api/v1/admin/reservations/{created['id']}").status_code == 200
        assert client.get("/api/v1/admin/reservations").json() == []

    def test_dashboard(self, client, sample_reservation):
        client.post("/api/v1/reservations", json=sample_reservation, headers=USER)

        stats = client.get("/api/v1/admin/dashboard").json()
        assert stats["total_complexes"] == 2
        assert stats["total_spots"] == 42
        assert stats["total_reservations"] == 1
        assert stats["active_reservations"] == 1


class TestProfileAPI:
    """Profile endpoints."""

    def test_profile_lifecycle(self, client):
        assert client.get("/api/v1/profile", headers=USER).status_code == 404

        response = client.put(
            "/api/v1/profile",
            json={"email": "john.doe@example.com", "name": "John Doe", "vehicle_plate": "ABC123"},
            headers=USER,
        )
        assert response.status_code == 200

        response = client.put("/api/v1/profile", json={"vehicle_plate": "XYZ789"}, headers=USER)
        profile = response.json()
        assert profile["email"] == "john.doe@example.com"
        assert profile["vehicle_plate"] == "XYZ789"

    def test_new_profile_needs_email(self, client):
        response = client.put("/api/v1/profile", json={"name": "No Email"}, headers=USER)
        assert response.status_code == 400

    def test_profile_requires_login(self, client):
        assert client.get("/api/v1/profile").status_code == 401


class TestVideoFeedsAPI:
    """Video feeds, spot definitions and frame processing."""

    def _frame(self):
        ok, buffer = cv2.imencode(".png", np.zeros((100, 200, 3), dtype=np.uint8))
        assert ok
        return base64.b64encode(buffer.tobytes()).decode("ascii")

    def _definitions(self):
        return [
            {"spot_id": "A02", "parking_complex": "Demo Parking 1", "x": 10, "y": 10, "width": 20, "height": 40},
            {"spot_id": "A03", "parking_complex": "Demo Parking 1", "x": 60, "y": 10, "width": 20, "height": 40},
        ]

    def test_feed_and_definitions(self, client):
        feed = client.post(
            "/api/v1/video-feeds",
            json={"name": "Entrance", "url": "rtsp://camera/1", "parking_complex": "Demo Parking 1"},
        ).json()

        response = client.put(f"/api/v1/video-feeds/{feed['id']}/spot-definitions", json=self._definitions())
        assert response.status_code == 200
        assert all(d["video_feed_id"] == feed["id"] for d in response.json())

        listed = client.get(f"/api/v1/video-feeds/{feed['id']}/spot-definitions").json()
        assert [d["spot_id"] for d in listed] == ["A02", "A03"]

        assert client.delete(f"/api/v1/video-feeds/{feed['id']}").status_code == 200
        assert client.get("/api/v1/video-feeds").json() == []

    def test_feed_requires_all_fields(self, client):
        response = client.post(
            "/api/v1/video-feeds",
            json={"name": "Entrance", "url": "", "parking_complex": "Demo Parking 1"},
        )
        assert response.status_code == 400

    def test_analyze_frame_updates_spots(self, client, detector):
        detector.detections = [Detection("car", 0.91, (20, 10, 60, 50))]

        response = client.post(
            "/api/v1/cv/process",
            json={
                "action": "analyze_frame",
                "video_frame": self._frame(),
                "spot_definitions": self._definitions(),
            },
        )

        assert response.status_code == 200
        results = {r["spot_id"]: r for r in response.json()["results"]}
        assert results["A02"]["occupied"] is True
        assert results["A03"]["occupied"] is False

        spots = {s["spot_id"]: s["status"] for s in client.get("/api/v1/complexes/Demo Parking 1/spots").json()}
        assert spots["A02"] == "occupied"
        assert spots["A03"] == "available"

    def test_bad_frame(self, client):
        response = client.post(
            "/api/v1/cv/process",
            json={"action": "analyze_frame", "video_frame": "###", "spot_definitions": self._definitions()},
        )
        assert response.status_code == 400

    def test_start_monitoring(self, client):
        response = client.post("/api/v1/cv/process", json={"action": "start_monitoring", "feed_id": "f1"})
        assert response.status_code == 200
        assert response.json()["message"] == "Monitoring started"

    def test_unknown_action(self, client):
        response = client.post("/api/v1/cv/process", json={"action": "dance"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown action"


class TestMetricsAPI:
    """GET /metrics."""

    def test_metrics_exposed(self, client, sample_reservation):
        client.post("/api/v1/reservations", json=sample_reservation, headers=USER)

        response = client.get("/api/v1/metrics")
        assert response.status_code == 200
        assert "parking_reservations_created_total" in response.text


class TestAppFactory:
    """Application wiring through the lifespan."""

    def test_create_app_seeds_demo_data(self):
        app = create_app(AppConfig(database=DatabaseConfig(url="sqlite://")))

        with TestClient(app) as client:
            health = client.get("/api/v1/health").json()
            assert health["detection_enabled"] is False

            complexes = client.get("/api/v1/complexes").json()
            assert sum(c["spot_count"] for c in complexes) == 42

            response = client.post("/api/v1/cv/process", json={"action": "analyze_frame", "video_frame": "x"})
            assert response.status_code == 503


class TestRouteHandlers:
    """Handlers that hit the database run in FastAPI's threadpool."""

    def test_store_backed_handlers_are_sync(self):
        async_routes = [
            route.path
            for route in router.routes
            if isinstance(route, APIRoute) and inspect.iscoroutinefunction(route.endpoint)
        ]
        assert async_routes == ["/metrics"]
