"""Tests for the YOLO vehicle detector, run against a stand-in model."""
from types import SimpleNamespace

import numpy as np

from parking_reservations.config import AppConfig, DetectionConfig
from parking_reservations.detection import yolo_detector
from parking_reservations.detection.analyzer import OccupancyAnalyzer
from parking_reservations.detection.region_overlap import Detection
from parking_reservations.detection.yolo_detector import VehicleDetector
from parking_reservations.main import build_analyzer


def box(class_id, confidence, xyxy):
    return SimpleNamespace(cls=[class_id], conf=[confidence], xyxy=[xyxy])


class StubModel:
    """Mimics the ultralytics call interface and records its inputs."""

    def __init__(self, boxes):
        self.boxes = boxes
        self.images = []
        self.kwargs = []

    def __call__(self, image, **kwargs):
        self.images.append(image)
        self.kwargs.append(kwargs)
        return [SimpleNamespace(boxes=self.boxes)]


def frame(level):
    return np.full((48, 64, 3), level, dtype=np.uint8)


class TestVehicleDetector:
    """Filtering and preprocessing around the model call."""

    def test_keeps_vehicle_classes_only(self):
        model = StubModel(
            [
                box(2, 0.91, [10.4, 5.0, 30.9, 25.2]),
                box(0, 0.99, [0, 0, 5, 5]),  # person
                box(7, 0.55, [40, 10, 60, 40]),
            ]
        )
        detector = VehicleDetector(model=model, enhance_low_light=False)

        detections = detector.detect_vehicles(frame(150))

        assert detections == [
            Detection("car", 0.91, (10, 5, 30, 25)),
            Detection("truck", 0.55, (40, 10, 60, 40)),
        ]

    def test_passes_confidence_and_device(self):
        model = StubModel([])
        detector = VehicleDetector(model=model, confidence_threshold=0.7, device="cpu")

        assert detector.detect_vehicles(frame(150)) == []
        assert model.kwargs == [{"conf": 0.7, "device": "cpu", "verbose": False}]

    def test_dark_frame_is_enhanced(self):
        model = StubModel([])
        detector = VehicleDetector(model=model)
        dark = frame(20)
        dark[:24] = 40

        detector.detect_vehicles(dark)

        assert model.images[0] is not dark
        assert model.images[0].shape == dark.shape

    def test_bright_frame_is_untouched(self):
        model = StubModel([])
        detector = VehicleDetector(model=model)
        bright = frame(200)

        detector.detect_vehicles(bright)

        assert model.images[0] is bright

    def test_enhancement_can_be_disabled(self):
        model = StubModel([])
        detector = VehicleDetector(model=model, enhance_low_light=False)
        dark = frame(10)

        detector.detect_vehicles(dark)

        assert model.images[0] is dark

    def test_low_light_threshold(self):
        detector = VehicleDetector(model=StubModel([]), low_light_threshold=100)
        assert detector._is_low_light(frame(99))
        assert not detector._is_low_light(frame(100))


class TestBuildAnalyzer:
    """Detector wiring from configuration."""

    def test_disabled_detection(self):
        assert build_analyzer(AppConfig()) is None

    def test_enabled_detection_loads_model(self, monkeypatch):
        loaded = []

        def fake_load(model_path):
            loaded.append(model_path)
            return StubModel([])

        monkeypatch.setattr(yolo_detector, "load_yolo_model", fake_load)
        config = AppConfig(
            detection=DetectionConfig(enabled=True, model_path="weights/lot.pt", confidence_threshold=0.6)
        )

        analyzer = build_analyzer(config)

        assert isinstance(analyzer, OccupancyAnalyzer)
        assert loaded == ["weights/lot.pt"]
        assert analyzer.detector.confidence_threshold == 0.6
