"""Video feeds and the spot regions drawn on them."""

import logging

from ..exceptions import NotFoundError, ReservationValidationError
from ..state.models import SpotDefinition, VideoFeed
from ..storage.repository import Repository

logger = logging.getLogger(__name__)


class VideoFeedService:
    """Manages camera feeds and their spot definitions."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def add_feed(self, name: str, url: str, parking_complex: str) -> VideoFeed:
        if not (name or "").strip() or not (url or "").strip() or not (parking_complex or "").strip():
            raise ReservationValidationError("Please fill in all fields")

        feed = self.repository.insert_video_feed(name.strip(), url.strip(), parking_complex.strip())
        logger.info(f"Added video feed '{feed.name}' for {feed.parking_complex}")
        return feed

    def list_feeds(self) -> list[VideoFeed]:
        return self.repository.list_video_feeds()

    def get_feed(self, feed_id: str) -> VideoFeed:
        feed = self.repository.get_video_feed(feed_id)
        if feed is None:
            raise NotFoundError(f"Video feed '{feed_id}' not found")
        return feed

    def delete_feed(self, feed_id: str) -> None:
        if not self.repository.delete_video_feed(feed_id):
            raise NotFoundError(f"Video feed '{feed_id}' not found")
        logger.info(f"Deleted video feed {feed_id}")

    def save_definitions(
        self,
        feed_id: str,
        definitions: list[SpotDefinition],
    ) -> list[SpotDefinition]:
        """Replace a feed's spot definitions."""
        self.get_feed(feed_id)

        for d in definitions:
            if not 0 <= d.x <= 100 or not 0 <= d.y <= 100 or d.width <= 0 or d.height <= 0:
                raise ReservationValidationError(
                    f"Spot '{d.spot_id}' region must lie within the frame (percent)"
                )

        saved = self.repository.replace_spot_definitions(feed_id, definitions)
        logger.info(f"Saved {len(saved)} spot definitions for feed {feed_id}")
        return saved

    def list_definitions(self, feed_id: str) -> list[SpotDefinition]:
        self.get_feed(feed_id)
        return self.repository.list_spot_definitions(feed_id)
