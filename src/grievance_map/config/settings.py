# src/grievance_map/config/settings.py
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional

# .env is at repo root
# This file: <repo>/src/grievance_map/config/settings.py (4 levels deep)
_ENV_FILE = Path(__file__).parent.parent.parent.parent / ".env"


class GrievanceMapSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_ENV_FILE, extra="ignore")

    # Geocoding provider selection
    GEOCODER: Literal["google", "nominatim"] = "google"
    GOOGLE_MAPS_API_KEY: Optional[str] = None
    NOMINATIM_USER_AGENT: str = "GrievanceMap/1.0 (settlement geocoding)"

    # Batch geocoding
    GEOCODE_BATCH_SIZE: int = 10
    GEOCODE_CONCURRENCY: int = 4  # upper bound on in-flight calls within a batch
    GEOCODE_TIMEOUT_SECONDS: float = 10.0
    GEOCODE_DELAY_MS: int = Field(
        default=0, description="Pause after each call (Nominatim needs >= 1100)"
    )

    # Region used for geocoding queries and result validation
    DISTRICT_NAME: str = "Budaun"
    STATE_NAME: str = "Uttar Pradesh"
    BOUNDS_NORTH: float = 28.52
    BOUNDS_SOUTH: float = 27.61
    BOUNDS_EAST: float = 79.56
    BOUNDS_WEST: float = 78.52

    # Reference data loaded by the HTTP app at startup
    BOUNDARIES_PATH: Optional[str] = None  # subdistrict FeatureCollection
    SETTLEMENTS_PATH: Optional[str] = None  # settlement records JSON

    # Layer composition
    HIGHLIGHT_RADIUS_DEG: float = Field(
        default=0.02, description="Radius of the highlight ring in degrees"
    )
    HIGHLIGHT_NUM_POINTS: int = Field(
        default=32, description="Vertices of the highlight ring (excluding closure)"
    )
    COORDINATE_PRECISION: int = Field(
        default=6, description="Decimal places kept on synthesized coordinates"
    )


settings = GrievanceMapSettings()


def get_settings() -> GrievanceMapSettings:
    """Get the settings instance."""
    return settings
