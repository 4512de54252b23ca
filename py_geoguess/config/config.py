from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

import os

# Explicitly load .env for local/dev environments only if values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # Database Configuration
    db_url: Optional[str] = Field(default=None, description="Full database URL, overrides the db_* parts")
    db_host: str = Field(default="localhost", description="Database host")
    db_port: int = Field(default=5432, description="Database port")
    db_name: str = Field(default="py_geoguess", description="Database name")
    db_user: str = Field(default="postgres", description="Database user")
    db_password: str = Field(default="password", description="Database password")

    @property
    def database_url(self) -> str:
        """Construct full database URL."""
        if self.db_url:
            return self.db_url
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")
    allowed_origins: str = Field(default="http://localhost:8080", description="CORS allowed origins")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # External services
    streetview_api_key: str = Field(default="", description="Street View metadata API key")
    streetview_metadata_url: str = Field(
        default="https://maps.googleapis.com/maps/api/streetview/metadata",
        description="Street View image metadata endpoint",
    )
    shapes_base_url: str = Field(default="http://localhost:8080/shapes", description="Base URL of the shape GeoJSON files")
    shape_catalog_file: str = Field(default="catalog.json", description="Shape catalog document under shapes_base_url")
    http_timeout_seconds: Optional[float] = Field(
        default=30.0, description="Transport timeout for outgoing HTTP calls, None waits forever"
    )

    # Round Generation Configuration
    default_round_count: int = Field(default=5, ge=1, description="Rounds generated per game")
    max_region_attempts: int = Field(default=30, ge=1, description="Panorama lookups per round in region mode")
    default_search_radius_m: float = Field(default=40000.0, gt=0, description="Panorama search radius for sampled points")
    route_search_radius_m: float = Field(default=100.0, gt=0, description="Panorama search radius for route points")
    jump_attempts: int = Field(default=10, ge=1, description="Backoff attempts for a bearing jump")
    random_seed: Optional[int] = Field(default=None, description="Seed for the shared random generator")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate singleton settings object
settings = Settings()
