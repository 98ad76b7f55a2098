"""YOLOv8-based vehicle detection (requires the "detection" extra)."""

import logging
from typing import Any, Optional

import cv2
import numpy as np

from .region_overlap import Detection

logger = logging.getLogger(__name__)

# COCO class IDs for vehicles
VEHICLE_CLASSES = {
    2: "car",
    3: "motorcycle",
    5: "bus",
    7: "truck",
}


def load_yolo_model(model_path: str) -> Any:
    """
    Load YOLO weights with ultralytics.

    Args:
        model_path: Path to YOLO model weights (downloaded if not found)

    Returns:
        A callable ultralytics model
    """
    from ultralytics import YOLO

    logger.info(f"Loading YOLO model: {model_path}")
    return YOLO(model_path)


class VehicleDetector:
    """
    Vehicle detector feeding the occupancy analyzer.

    Runs a YOLO model over a camera frame and keeps vehicle classes only.
    Dark frames (night shots of open-air lots) are brightened with CLAHE
    before inference.
    """

    def __init__(
        self,
        model_path: str = "yolov8n.pt",
        confidence_threshold: float = 0.5,
        device: Optional[str] = None,
        enhance_low_light: bool = True,
        low_light_threshold: int = 80,
        model: Any = None,
    ):
        """
        Initialize the vehicle detector.

        Args:
            model_path: YOLO weights, used when no model is given
            confidence_threshold: Minimum confidence for detections
            device: Device to run on ('cpu', 'cuda', or None for auto)
            enhance_low_light: Apply CLAHE enhancement to dark frames
            low_light_threshold: Mean gray level (0-255) below which a frame is dark
            model: Preloaded model with the ultralytics call interface
        """
        self.model = model if model is not None else load_yolo_model(model_path)
        self.confidence_threshold = confidence_threshold
        self.device = device
        self.enhance_low_light = enhance_low_light
        self.low_light_threshold = low_light_threshold
        self.clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))

        logger.info(
            f"Vehicle detector ready (confidence >= {confidence_threshold}, "
            f"low-light enhancement: {enhance_low_light})"
        )

    def _enhance_image(self, image: np.ndarray) -> np.ndarray:
        """
        Brighten a dark frame by applying CLAHE to its luminance.

        Args:
            image: BGR image as numpy array

        Returns:
            Enhanced BGR image
        """
        lab = cv2.cvtColor(image, cv2.COLOR_BGR2LAB)
        l, a, b = cv2.split(lab)
        lab_enhanced = cv2.merge([self.clahe.apply(l), a, b])
        return cv2.cvtColor(lab_enhanced, cv2.COLOR_LAB2BGR)

    def _is_low_light(self, image: np.ndarray) -> bool:
        """
        Check whether a frame is dark enough to enhance.

        Args:
            image: BGR image as numpy array

        Returns:
            True if the mean brightness is below the low-light threshold
        """
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        return float(np.mean(gray)) < self.low_light_threshold

    def detect_vehicles(self, image: np.ndarray) -> list[Detection]:
        """
        Detect vehicles in a frame.

        Args:
            image: BGR image as numpy array (OpenCV format)

        Returns:
            Detections for vehicle classes, with pixel bounding boxes
        """
        processed_image = image
        if self.enhance_low_light and self._is_low_light(image):
            logger.debug("Low-light frame, applying enhancement")
            processed_image = self._enhance_image(image)

        results = self.model(
            processed_image,
            conf=self.confidence_threshold,
            device=self.device,
            verbose=False,
        )[0]

        detections = []
        for box in results.boxes:
            class_id = int(box.cls[0])
            if class_id not in VEHICLE_CLASSES:
                continue

            x1, y1, x2, y2 = map(int, box.xyxy[0])
            detections.append(
                Detection(
                    class_name=VEHICLE_CLASSES[class_id],
                    confidence=float(box.conf[0]),
                    bbox=(x1, y1, x2, y2),
                )
            )

        logger.debug(f"Found {len(detections)} vehicle(s) in {image.shape[1]}x{image.shape[0]} frame")
        return detections
