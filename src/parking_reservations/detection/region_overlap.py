"""Region overlap calculation for parking spot occupancy detection."""

from dataclasses import dataclass
from typing import Optional

from ..state.models import SpotDefinition


@dataclass
class Detection:
    """Represents a detected vehicle."""

    class_name: str
    confidence: float
    bbox: tuple[int, int, int, int]  # x1, y1, x2, y2


@dataclass
class SpotRegion:
    """A spot definition resolved to pixel coordinates on one frame."""

    spot_id: str
    parking_complex: str
    bbox: tuple[int, int, int, int]  # x1, y1, x2, y2

    @classmethod
    def from_definition(
        cls,
        definition: SpotDefinition,
        frame_width: int,
        frame_height: int,
    ) -> "SpotRegion":
        """
        Scale a percentage rectangle to the frame size.

        The rectangle is clamped to the frame.
        """
        x1 = int(round(definition.x / 100 * frame_width))
        y1 = int(round(definition.y / 100 * frame_height))
        x2 = int(round((definition.x + definition.width) / 100 * frame_width))
        y2 = int(round((definition.y + definition.height) / 100 * frame_height))

        return cls(
            spot_id=definition.spot_id,
            parking_complex=definition.parking_complex,
            bbox=(
                max(0, min(x1, frame_width)),
                max(0, min(y1, frame_height)),
                max(0, min(x2, frame_width)),
                max(0, min(y2, frame_height)),
            ),
        )


def calculate_overlap_percentage(
    vehicle_bbox: tuple[int, int, int, int],
    spot: SpotRegion,
) -> float:
    """
    Calculate what share of the parking spot is covered by the vehicle.

    This is more useful than IoU for determining if a vehicle is "in" a spot,
    as it accounts for the relative size difference between vehicles and spots.

    Args:
        vehicle_bbox: Vehicle bounding box as (x1, y1, x2, y2)
        spot: Parking spot region to check

    Returns:
        Overlap share (0.0 to 1.0)
    """
    spot_bbox = spot.bbox

    x1 = max(vehicle_bbox[0], spot_bbox[0])
    y1 = max(vehicle_bbox[1], spot_bbox[1])
    x2 = min(vehicle_bbox[2], spot_bbox[2])
    y2 = min(vehicle_bbox[3], spot_bbox[3])

    intersection = max(0, x2 - x1) * max(0, y2 - y1)
    spot_area = (spot_bbox[2] - spot_bbox[0]) * (spot_bbox[3] - spot_bbox[1])

    return intersection / spot_area if spot_area > 0 else 0


@dataclass
class VehicleMatch:
    """Information about a vehicle matched to a parking spot."""

    vehicle_type: str
    confidence: float
    overlap: float


@dataclass
class SpotMatch:
    """Best vehicle for a spot, plus the best overlap seen at all."""

    vehicle: Optional[VehicleMatch]
    best_overlap: float


def match_vehicles_to_spots(
    detections: list[Detection],
    spots: list[SpotRegion],
    min_overlap: float = 0.3,
) -> dict[tuple[str, str], SpotMatch]:
    """
    Match detected vehicles to parking spots.

    Each spot is matched to at most one vehicle (the one with highest overlap).
    A vehicle can occupy multiple spots if it's large enough.

    Args:
        detections: List of detected vehicles
        spots: List of spot regions to check
        min_overlap: Minimum overlap share to consider occupied

    Returns:
        Dict mapping (parking_complex, spot_id) to its SpotMatch
    """
    matches: dict[tuple[str, str], SpotMatch] = {}

    for spot in spots:
        best_match: Optional[VehicleMatch] = None
        best_overlap = 0.0

        for detection in detections:
            overlap = calculate_overlap_percentage(detection.bbox, spot)
            if overlap <= best_overlap:
                continue

            best_overlap = overlap
            if overlap >= min_overlap:
                best_match = VehicleMatch(
                    vehicle_type=detection.class_name,
                    confidence=detection.confidence,
                    overlap=overlap,
                )

        matches[(spot.parking_complex, spot.spot_id)] = SpotMatch(
            vehicle=best_match,
            best_overlap=best_overlap,
        )

    return matches
