"""Parking spot registry: spot status, complexes and dashboard counts."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from ..exceptions import NotFoundError, ReservationValidationError
from ..metrics import record_occupancy_confidence, record_spot_change, update_spot_counts
from ..reservations.status import derive_status
from .models import (
    ComplexSummary,
    DashboardStats,
    OccupancyResult,
    ParkingSpot,
    ReservationStatus,
    SpotStatus,
)

if TYPE_CHECKING:
    from ..storage.repository import Repository

logger = logging.getLogger(__name__)

# Status cycle used for demo spots
SEED_STATUSES = [SpotStatus.AVAILABLE, SpotStatus.OCCUPIED, SpotStatus.RESERVED]


class SpotRegistry:
    """
    Owns the status of every parking spot.

    A spot's status is a plain field overwritten by reservations,
    cancellations, occupancy analysis and admins. There is no version
    check: the last writer wins.
    """

    def __init__(
        self,
        repository: "Repository",
        default_spot_count: int = 20,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the spot registry.

        Args:
            repository: Store access
            default_spot_count: Number of spots created with a new complex
            clock: Returns the current local wall-clock time
        """
        self.repository = repository
        self.default_spot_count = default_spot_count
        self.clock = clock

    def list_spots(self, parking_complex: Optional[str] = None) -> list[ParkingSpot]:
        return self.repository.list_spots(parking_complex)

    def get_spot(self, parking_complex: str, spot_id: str) -> ParkingSpot:
        spot = self.repository.get_spot(parking_complex, spot_id)
        if spot is None:
            raise NotFoundError(f"Spot '{spot_id}' not found in '{parking_complex}'")
        return spot

    def add_spot(
        self,
        parking_complex: str,
        spot_id: str,
        status: SpotStatus = SpotStatus.AVAILABLE,
    ) -> ParkingSpot:
        if not parking_complex.strip() or not spot_id.strip():
            raise ReservationValidationError("Please fill in all fields")
        if self.repository.get_spot(parking_complex, spot_id) is not None:
            raise ReservationValidationError(
                f"Spot '{spot_id}' already exists in '{parking_complex}'"
            )

        spot = self.repository.insert_spots([(parking_complex, spot_id, status)])[0]
        logger.info(f"Added spot {parking_complex}/{spot_id} ({status.value})")
        return spot

    def delete_spot(self, parking_complex: str, spot_id: str) -> None:
        if not self.repository.delete_spot(parking_complex, spot_id):
            raise NotFoundError(f"Spot '{spot_id}' not found in '{parking_complex}'")
        logger.info(f"Deleted spot {parking_complex}/{spot_id}")

    def set_status(
        self,
        parking_complex: str,
        spot_id: str,
        status: SpotStatus,
        source: str = "admin",
    ) -> SpotStatus:
        """
        Overwrite a spot's status.

        Args:
            parking_complex: Complex name
            spot_id: Spot within the complex
            status: New status
            source: What caused the write (admin, occupancy, ...)

        Returns:
            The previous status

        Raises:
            NotFoundError: If the spot does not exist
        """
        previous = self.repository.update_spot_status(parking_complex, spot_id, status)
        if previous is None:
            raise NotFoundError(f"Spot '{spot_id}' not found in '{parking_complex}'")

        if previous != status:
            logger.info(
                f"Spot {parking_complex}/{spot_id} changed: {previous.value} -> {status.value} ({source})"
            )
            record_spot_change(parking_complex, status.value, source)

        return previous

    def list_complexes(self) -> list[ComplexSummary]:
        return [
            ComplexSummary(name=name, spot_count=count)
            for name, count in self.repository.list_complexes()
        ]

    def add_complex(self, name: str, spot_count: Optional[int] = None) -> ComplexSummary:
        """Create a complex with spots "1".."N", all available."""
        name = (name or "").strip()
        if not name:
            raise ReservationValidationError("Please enter a complex name")

        count = self.default_spot_count if spot_count is None else spot_count
        if count < 1:
            raise ReservationValidationError("A complex needs at least one spot")

        if any(c.name == name for c in self.list_complexes()):
            raise ReservationValidationError(f"Parking complex '{name}' already exists")

        self.repository.insert_spots(
            [(name, str(i), SpotStatus.AVAILABLE) for i in range(1, count + 1)]
        )
        logger.info(f"Added parking complex '{name}' with {count} spots")
        return ComplexSummary(name=name, spot_count=count)

    def delete_complex(self, name: str) -> None:
        """Remove a complex's reservations and then its spots."""
        with self.repository.transaction() as tx:
            reservations = tx.delete_reservations_for_complex(name)
            spots = tx.delete_spots_for_complex(name)
            if not spots:
                raise NotFoundError(f"Parking complex '{name}' not found")

        logger.info(
            f"Deleted parking complex '{name}' ({spots} spots, {reservations} reservations)"
        )

    def apply_occupancy(self, results: list[OccupancyResult]) -> list[str]:
        """
        Write occupancy analysis results to the spots they describe.

        Returns:
            IDs of spots whose status changed
        """
        changed = []

        for result in results:
            record_occupancy_confidence(result.confidence)
            status = SpotStatus.OCCUPIED if result.occupied else SpotStatus.AVAILABLE

            previous = self.repository.update_spot_status(
                result.parking_complex, result.spot_id, status
            )
            if previous is None:
                logger.warning(
                    f"Unknown spot in occupancy results: {result.parking_complex}/{result.spot_id}"
                )
                continue

            if previous != status:
                changed.append(result.spot_id)
                logger.info(
                    f"Spot {result.parking_complex}/{result.spot_id} changed: "
                    f"{previous.value} -> {status.value} (confidence {result.confidence:.2f})"
                )
                record_spot_change(result.parking_complex, status.value, "occupancy")

        return changed

    def dashboard_stats(self) -> DashboardStats:
        spots = self.repository.list_spots()
        reservations = self.repository.list_reservations()
        now = self.clock()

        available = sum(1 for s in spots if s.status == SpotStatus.AVAILABLE)
        reserved = sum(1 for s in spots if s.status == SpotStatus.RESERVED)
        occupied = sum(1 for s in spots if s.status == SpotStatus.OCCUPIED)
        active = sum(
            1
            for r in reservations
            if derive_status(r.date, r.time, r.duration, now)
            in (ReservationStatus.UPCOMING, ReservationStatus.LIVE)
        )

        update_spot_counts(available=available, reserved=reserved, occupied=occupied)

        return DashboardStats(
            total_complexes=len({s.parking_complex for s in spots}),
            total_spots=len(spots),
            available_spots=available,
            reserved_spots=reserved,
            occupied_spots=occupied,
            total_reservations=len(reservations),
            active_reservations=active,
        )

    def seed_demo_data(self, complexes: dict[str, int]) -> int:
        """
        Create demo complexes when no spots exist yet.

        Spot i of the k-th complex is available when i is a multiple of 4,
        otherwise it cycles through available/occupied/reserved.

        Returns:
            Number of spots created
        """
        if self.repository.count_spots() > 0:
            return 0

        spots = []
        for seed, (name, count) in enumerate(complexes.items(), start=1):
            for i in range(1, count + 1):
                status = SpotStatus.AVAILABLE if i % 4 == 0 else SEED_STATUSES[(i + seed) % 3]
                spots.append((name, f"A{i:02d}", status))

        self.repository.insert_spots(spots)
        logger.info(f"Seeded {len(spots)} demo spots across {len(complexes)} complexes")
        return len(spots)
