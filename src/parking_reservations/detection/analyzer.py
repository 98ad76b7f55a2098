"""Frame analysis producing per-spot occupancy results."""

import base64
import binascii
import logging
from typing import Protocol

import cv2
import numpy as np

from ..state.models import OccupancyResult, SpotDefinition
from .region_overlap import Detection, SpotRegion, match_vehicles_to_spots

logger = logging.getLogger(__name__)


class Detector(Protocol):
    def detect_vehicles(self, image: np.ndarray) -> list[Detection]: ...


def decode_frame(frame: str) -> np.ndarray:
    """
    Decode a base64 image (optionally a data URL) into a BGR array.

    Raises:
        ValueError: If the payload is not a decodable image
    """
    payload = frame.split(",", 1)[1] if frame.startswith("data:") else frame

    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Frame is not valid base64: {e}") from e

    nparr = np.frombuffer(image_bytes, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR) if nparr.size else None
    if image is None:
        raise ValueError("Failed to decode frame image")

    return image


class OccupancyAnalyzer:
    """
    Decides which defined spots on a frame hold a vehicle.

    Every result follows the {spot_id, parking_complex, occupied, confidence}
    contract regardless of which detector runs underneath.
    """

    def __init__(self, detector: Detector, min_overlap: float = 0.3):
        """
        Args:
            detector: Anything with detect_vehicles(image) -> list[Detection]
            min_overlap: Minimum share of a spot a vehicle must cover
        """
        self.detector = detector
        self.min_overlap = min_overlap

    def analyze(self, frame: str, definitions: list[SpotDefinition]) -> list[OccupancyResult]:
        """
        Analyze one frame.

        Occupied spots report the matched vehicle's detection confidence;
        free spots report one minus the largest overlap any vehicle had.

        Args:
            frame: Base64 encoded JPEG/PNG frame
            definitions: Spot regions in percent of the frame

        Returns:
            One OccupancyResult per definition, in the same order
        """
        image = decode_frame(frame)
        height, width = image.shape[:2]

        regions = [SpotRegion.from_definition(d, width, height) for d in definitions]
        detections = self.detector.detect_vehicles(image)
        logger.debug(f"Detected {len(detections)} vehicle(s) on {width}x{height} frame")

        matches = match_vehicles_to_spots(detections, regions, min_overlap=self.min_overlap)

        results = []
        for region in regions:
            match = matches[(region.parking_complex, region.spot_id)]
            if match.vehicle is not None:
                results.append(
                    OccupancyResult(
                        spot_id=region.spot_id,
                        parking_complex=region.parking_complex,
                        occupied=True,
                        confidence=round(match.vehicle.confidence, 4),
                    )
                )
            else:
                results.append(
                    OccupancyResult(
                        spot_id=region.spot_id,
                        parking_complex=region.parking_complex,
                        occupied=False,
                        confidence=round(1.0 - match.best_overlap, 4),
                    )
                )

        return results
