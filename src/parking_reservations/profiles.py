"""User profile management."""

import logging
from typing import Optional

from .exceptions import NotFoundError, ReservationValidationError
from .state.models import Profile
from .storage.repository import Repository

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads and updates the profile attached to an authenticated user."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def get(self, user_id: str) -> Profile:
        profile = self.repository.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"Profile for user '{user_id}' not found")
        return profile

    def update(
        self,
        user_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        vehicle_plate: Optional[str] = None,
    ) -> Profile:
        """
        Update the given fields, creating the profile on first write.

        Raises:
            ReservationValidationError: If a new profile has no email
        """
        if self.repository.get_profile(user_id) is None and not email:
            raise ReservationValidationError("Please enter your email")

        profile = self.repository.upsert_profile(
            user_id,
            email=email,
            name=name,
            vehicle_plate=vehicle_plate.strip() if vehicle_plate else vehicle_plate,
        )
        logger.info(f"Updated profile for user {user_id}")
        return profile
