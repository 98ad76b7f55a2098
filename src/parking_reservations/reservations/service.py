"""Reservation creation, retrieval and cancellation."""

import logging
from datetime import date as date_type
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel

from ..config import DEFAULT_DURATIONS
from ..exceptions import NotAuthenticatedError, NotFoundError, ReservationValidationError
from ..metrics import (
    record_reservation_cancelled,
    record_reservation_created,
    record_reservation_rejected,
    record_spot_change,
)
from ..state.models import Reservation, ReservationStatus, ReservationView, SpotStatus
from ..storage.repository import Repository
from .status import derive_status, initial_status, normalize_time, remaining_time

logger = logging.getLogger(__name__)


class ReservationRequest(BaseModel):
    """Reservation form as submitted; every field is checked by the service."""

    spot_id: str
    parking_complex: str
    vehicle_plate: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None
    duration: Optional[str] = None


class ReservationService:
    """
    Creates reservations and serves them with a freshly derived status.

    Args:
        repository: Store access
        clock: Returns the current local wall-clock time
        durations: Allowed duration options
    """

    def __init__(
        self,
        repository: Repository,
        clock: Callable[[], datetime] = datetime.now,
        durations: Optional[list[str]] = None,
    ):
        self.repository = repository
        self.clock = clock
        self.durations = list(durations or DEFAULT_DURATIONS)

    def _validate(self, request: ReservationRequest, user_id: Optional[str], today: date_type) -> str:
        """Check the form in order; return the normalized start time."""
        if not request.vehicle_plate or not request.vehicle_plate.strip():
            raise ReservationValidationError("Please enter your vehicle plate number")

        if not request.date:
            raise ReservationValidationError("Please select a date")
        try:
            requested_date = date_type.fromisoformat(request.date)
        except ValueError:
            raise ReservationValidationError("Please select a valid date")
        if requested_date < today:
            raise ReservationValidationError("Reservation date cannot be in the past")

        if not request.time:
            raise ReservationValidationError("Please select a time")
        try:
            start_time = normalize_time(request.time)
        except ValueError:
            raise ReservationValidationError("Please select a valid time")

        if not request.duration:
            raise ReservationValidationError("Please select the duration")
        if request.duration not in self.durations:
            raise ReservationValidationError("Please select a valid duration")

        if not user_id:
            raise NotAuthenticatedError()

        return start_time

    def create(self, request: ReservationRequest, user_id: Optional[str]) -> ReservationView:
        """
        Validate and store a reservation, marking its spot as reserved.

        The insert and the spot update run in one transaction: either both
        are stored or neither is.

        Args:
            request: Submitted reservation form
            user_id: Authenticated user looked up at submit time, or None

        Raises:
            ReservationValidationError: First failing form check
            NotAuthenticatedError: No user is logged in
            NotFoundError: The spot does not exist
            StoreError: The store failed
        """
        now = self.clock()

        try:
            start_time = self._validate(request, user_id, now.date())
        except ReservationValidationError as e:
            logger.warning(f"Rejected reservation for {request.parking_complex}/{request.spot_id}: {e.message}")
            record_reservation_rejected("validation")
            raise
        except NotAuthenticatedError:
            logger.warning("Rejected reservation from unauthenticated user")
            record_reservation_rejected("unauthenticated")
            raise

        with self.repository.transaction() as tx:
            reservation = tx.insert_reservation(
                user_id=user_id,
                parking_complex=request.parking_complex,
                spot_id=request.spot_id,
                vehicle_plate=request.vehicle_plate.strip(),
                date=request.date,
                time=start_time,
                duration=request.duration,
                status=initial_status(request.date, now.date().isoformat()),
            )

            previous = tx.update_spot_status(
                request.parking_complex, request.spot_id, SpotStatus.RESERVED
            )
            if previous is None:
                raise NotFoundError(
                    f"Spot '{request.spot_id}' not found in '{request.parking_complex}'"
                )

        logger.info(
            f"Reservation {reservation.id} created for spot "
            f"{reservation.parking_complex}/{reservation.spot_id} "
            f"on {reservation.date} {reservation.time} ({reservation.duration})"
        )
        record_reservation_created(reservation.parking_complex)
        if previous != SpotStatus.RESERVED:
            record_spot_change(reservation.parking_complex, SpotStatus.RESERVED.value, "reservation")

        return self._view(reservation, now)

    def _view(self, reservation: Reservation, now: datetime) -> ReservationView:
        data = reservation.model_dump()
        data["status"] = derive_status(reservation.date, reservation.time, reservation.duration, now)
        data["remaining_time"] = remaining_time(
            reservation.date, reservation.time, reservation.duration, now
        )
        return ReservationView(**data)

    def _refresh(self, reservations: list[Reservation]) -> list[ReservationView]:
        """Recompute statuses and write back the ones that changed."""
        now = self.clock()
        views = []
        for reservation in reservations:
            view = self._view(reservation, now)
            if view.status is not None and view.status != reservation.status:
                self.repository.update_reservation_status(reservation.id, view.status)
            views.append(view)
        return views

    def get(self, reservation_id: str, user_id: Optional[str] = None) -> ReservationView:
        """Load one reservation; with user_id, only that user's reservation is visible."""
        reservation = self.repository.get_reservation(reservation_id)
        if reservation is None or (user_id is not None and reservation.user_id != user_id):
            raise NotFoundError(f"Reservation '{reservation_id}' not found")
        return self._refresh([reservation])[0]

    def list_for_user(
        self,
        user_id: str,
        status: Optional[ReservationStatus] = None,
    ) -> list[ReservationView]:
        """A user's reservations, newest first, optionally filtered by derived status."""
        views = self._refresh(self.repository.list_reservations(user_id=user_id))
        if status is not None:
            views = [v for v in views if v.status == status]
        return views

    def list_all(self, status: Optional[ReservationStatus] = None) -> list[ReservationView]:
        """All reservations, newest first, optionally filtered by derived status."""
        views = self._refresh(self.repository.list_reservations())
        if status is not None:
            views = [v for v in views if v.status == status]
        return views

    def cancel(self, reservation_id: str, user_id: Optional[str] = None) -> Reservation:
        """
        Delete a reservation and release its spot.

        Args:
            reservation_id: Reservation to cancel
            user_id: When given, only this user's reservation may be cancelled
        """
        with self.repository.transaction() as tx:
            reservation = tx.get_reservation(reservation_id)
            if reservation is None or (user_id is not None and reservation.user_id != user_id):
                raise NotFoundError(f"Reservation '{reservation_id}' not found")

            tx.delete_reservation(reservation_id)
            previous = tx.update_spot_status(
                reservation.parking_complex, reservation.spot_id, SpotStatus.AVAILABLE
            )

        logger.info(
            f"Reservation {reservation_id} cancelled, spot "
            f"{reservation.parking_complex}/{reservation.spot_id} released"
        )
        record_reservation_cancelled(reservation.parking_complex)
        if previous is not None and previous != SpotStatus.AVAILABLE:
            record_spot_change(reservation.parking_complex, SpotStatus.AVAILABLE.value, "cancellation")

        return reservation
