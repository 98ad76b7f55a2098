"""Configuration models and loading utilities."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

DEFAULT_DATABASE_URL = "sqlite:///./parking.db"

DEFAULT_DURATIONS = [
    "30 min",
    "1 hour",
    "2 hours",
    "4 hours",
    "8 hours",
    "All day",
]


class DatabaseConfig(BaseModel):
    """Reservation store connection configuration."""

    url: str = DEFAULT_DATABASE_URL  # Any SQLAlchemy URL
    echo: bool = False

    @field_validator("url", mode="before")
    @classmethod
    def resolve_env_var(cls, v: str) -> str:
        """Resolve environment variable references like ${VAR_NAME}."""
        if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
            env_var = v[2:-1]
            return os.environ.get(env_var) or DEFAULT_DATABASE_URL
        return v


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class AuthConfig(BaseModel):
    """Identity propagation from the upstream auth service."""

    user_header: str = "X-User-Id"


class ReservationsConfig(BaseModel):
    """Reservation form options."""

    durations: list[str] = list(DEFAULT_DURATIONS)


class ComplexesConfig(BaseModel):
    """Parking complex administration defaults."""

    default_spot_count: int = 20


class SeedConfig(BaseModel):
    """Demo data created on an empty spot table."""

    enabled: bool = True
    complexes: dict[str, int] = {"Demo Parking 1": 18, "Demo Parking 2": 24}


class DetectionConfig(BaseModel):
    """Occupancy analysis configuration."""

    enabled: bool = False
    model_path: str = "yolov8n.pt"
    confidence_threshold: float = 0.5
    min_overlap: float = 0.3  # Minimum share of the spot covered by a vehicle
    enhance_low_light: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"


class AppConfig(BaseModel):
    """Main application configuration."""

    database: DatabaseConfig = DatabaseConfig()
    api: APIConfig = APIConfig()
    auth: AuthConfig = AuthConfig()
    reservations: ReservationsConfig = ReservationsConfig()
    complexes: ComplexesConfig = ComplexesConfig()
    seed: SeedConfig = SeedConfig()
    detection: DetectionConfig = DetectionConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: str | Path) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return AppConfig(**data)


def get_config_path() -> Path:
    """Get the configuration file path, honouring PARKING_CONFIG."""
    env_path = os.environ.get("PARKING_CONFIG")
    if env_path:
        return Path(env_path)

    local_config = Path("config/config.yaml")
    if local_config.exists():
        return local_config

    # Docker layout
    parent_config = Path("/app/config/config.yaml")
    if parent_config.exists():
        return parent_config

    return local_config
