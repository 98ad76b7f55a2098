"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import init_router, router
from .auth import HeaderAuthProvider
from .config import AppConfig, get_config_path, load_config
from .detection.analyzer import OccupancyAnalyzer
from .detection.feeds import VideoFeedService
from .exceptions import StoreError
from .profiles import ProfileService
from .reservations.service import ReservationService
from .state.spot_registry import SpotRegistry
from .storage.repository import Repository, create_session_factory

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def read_config() -> AppConfig:
    """Load the configuration file, falling back to defaults if it is missing."""
    config_path = get_config_path()
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        logger.error("Using built-in defaults; create config/config.yaml from the example")
        return AppConfig()

    config = load_config(config_path)
    logger.info(f"Loaded configuration from {config_path}")
    return config


def build_analyzer(config: AppConfig) -> Optional[OccupancyAnalyzer]:
    """Create the occupancy analyzer when detection is enabled."""
    if not config.detection.enabled:
        logger.info("Occupancy detection disabled")
        return None

    from .detection.yolo_detector import VehicleDetector

    detector = VehicleDetector(
        model_path=config.detection.model_path,
        confidence_threshold=config.detection.confidence_threshold,
        enhance_low_light=config.detection.enhance_low_light,
    )
    return OccupancyAnalyzer(detector, min_overlap=config.detection.min_overlap)


def setup_services(config: AppConfig, analyzer: Optional[OccupancyAnalyzer] = None) -> Repository:
    """
    Wire store, services and router for a configuration.

    Returns:
        The repository all services share
    """
    session_factory = create_session_factory(config.database.url, echo=config.database.echo)
    repository = Repository(session_factory)

    spot_registry = SpotRegistry(
        repository,
        default_spot_count=config.complexes.default_spot_count,
    )

    init_router(
        reservation_service=ReservationService(
            repository,
            durations=config.reservations.durations,
        ),
        spot_registry=spot_registry,
        profile_service=ProfileService(repository),
        feed_service=VideoFeedService(repository),
        auth_provider=HeaderAuthProvider(config.auth.user_header),
        analyzer=analyzer,
    )

    if config.seed.enabled:
        try:
            spot_registry.seed_demo_data(config.seed.complexes)
        except StoreError as e:
            logger.error(f"Failed to seed demo data: {e}")

    return repository


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration to use; read from disk at startup when None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Parking Reservation Service...")

        app_config = config or read_config()
        logging.getLogger().setLevel(app_config.logging.level.upper())

        setup_services(app_config, build_analyzer(app_config))

        logger.info(
            f"Parking Reservation Service ready on http://{app_config.api.host}:{app_config.api.port}"
        )

        yield  # Application runs here

        logger.info("Shutdown complete")

    app = FastAPI(
        title="Parking Reservation Service",
        description="API for reserving parking spots and tracking their status",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1")
    return app


app = create_app()


def main():
    """Run the application."""
    config_path = get_config_path()
    if config_path.exists():
        cfg = load_config(config_path)
        host = cfg.api.host
        port = cfg.api.port
    else:
        host = "0.0.0.0"
        port = 8000

    uvicorn.run(
        "parking_reservations.main:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
