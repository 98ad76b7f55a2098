"""Occupancy detection module."""

from .analyzer import OccupancyAnalyzer, decode_frame
from .feeds import VideoFeedService
from .region_overlap import Detection, SpotRegion, match_vehicles_to_spots

__all__ = [
    "OccupancyAnalyzer",
    "decode_frame",
    "VideoFeedService",
    "Detection",
    "SpotRegion",
    "match_vehicles_to_spots",
]
