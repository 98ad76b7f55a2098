"""Domain errors raised by the reservation and spot services."""


class ParkingError(Exception):
    """Base class for all parking service errors."""


class ReservationValidationError(ParkingError):
    """A required field is missing or invalid; the message is user-facing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(ParkingError):
    """No authenticated user is attached to the request."""

    def __init__(self, message: str = "You must be logged in to make a reservation"):
        super().__init__(message)
        self.message = message


class NotFoundError(ParkingError):
    """A reservation, spot, feed or profile does not exist."""


class StoreError(ParkingError):
    """The backing store rejected or failed an operation."""
