"""Prometheus metrics for the reservation service."""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

RESERVATIONS_CREATED = Counter(
    "parking_reservations_created_total",
    "Total number of reservations created",
    ["parking_complex"],
    registry=REGISTRY,
)

RESERVATION_REJECTIONS = Counter(
    "parking_reservation_rejections_total",
    "Reservation requests rejected before reaching the store",
    ["reason"],
    registry=REGISTRY,
)

RESERVATIONS_CANCELLED = Counter(
    "parking_reservations_cancelled_total",
    "Total number of reservations cancelled",
    ["parking_complex"],
    registry=REGISTRY,
)

SPOT_STATUS_CHANGES = Counter(
    "parking_spot_status_changes_total",
    "Total number of parking spot status writes that changed the status",
    ["parking_complex", "new_status", "source"],
    registry=REGISTRY,
)

OCCUPANCY_CONFIDENCE = Histogram(
    "parking_occupancy_confidence",
    "Confidence score of occupancy analysis results",
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
    registry=REGISTRY,
)

SPOTS = Gauge(
    "parking_spots",
    "Number of parking spots by status",
    ["status"],
    registry=REGISTRY,
)


def record_reservation_created(parking_complex: str) -> None:
    """Record a created reservation."""
    RESERVATIONS_CREATED.labels(parking_complex=parking_complex).inc()


def record_reservation_rejected(reason: str) -> None:
    """Record a reservation request rejected during validation."""
    RESERVATION_REJECTIONS.labels(reason=reason).inc()


def record_reservation_cancelled(parking_complex: str) -> None:
    """Record a cancelled reservation."""
    RESERVATIONS_CANCELLED.labels(parking_complex=parking_complex).inc()


def record_spot_change(parking_complex: str, new_status: str, source: str) -> None:
    """Record a spot status change."""
    SPOT_STATUS_CHANGES.labels(
        parking_complex=parking_complex,
        new_status=new_status,
        source=source,
    ).inc()


def record_occupancy_confidence(confidence: float) -> None:
    """Record the confidence of one occupancy result."""
    OCCUPANCY_CONFIDENCE.observe(confidence)


def update_spot_counts(available: int, reserved: int, occupied: int) -> None:
    """Update spot count gauges."""
    SPOTS.labels(status="available").set(available)
    SPOTS.labels(status="reserved").set(reserved)
    SPOTS.labels(status="occupied").set(occupied)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)
