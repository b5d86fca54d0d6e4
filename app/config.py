"""Application configuration pulled from environment variables via pydantic."""
import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger, mask_url
logger = get_tagged_logger(__name__, tag="config")

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class Settings(BaseSettings):
    """Environment-driven configuration for the SwapMap backend."""
    model_config = SettingsConfigDict(env_prefix="SWAP_", extra="ignore")

    environment: str = "production"  # options: production, development
    log_level: str = "INFO"

    supplier_a_base_url: str = "https://api.cuub.tech"
    supplier_b_base_url: str = "https://api.energo.example.com/v1"
    supplier_b_username: str | None = None
    supplier_b_password: str | None = None
    supplier_b_token: str | None = None
    # Station ids matching this pattern belong to Supplier B unless the metadata says otherwise.
    supplier_b_station_pattern: str = r"^[A-Z]{2,4}\d{6,}$"
    request_timeout_seconds: float = 10.0

    cache_ttl_seconds: float = 10.0
    station_poll_interval_seconds: float = 30.0
    order_poll_interval_seconds: float = 60.0
    token_keepalive_interval_seconds: float = 60.0
    health_retry_delay_seconds: float = 30.0
    polling_enabled: bool = True

    station_metadata_file: Path = _DATA_DIR / "stations.json"
    battery_map_file: Path = _DATA_DIR / "battery_map.json"
    analytics_file: Path = _DATA_DIR / "analytics.json"
    analytics_flush_threshold: int = 20
    station_timezone: str = "America/Chicago"

    cors_origins: list[str] = ["*"]

    @field_validator("supplier_a_base_url", "supplier_b_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("supplier_b_station_pattern", mode="after")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Reject station id patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"Invalid supplier_b_station_pattern: {exc}") from exc
        return v

    @field_validator("environment", mode="after")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        """Lower-case the environment name."""
        return v.strip().lower()

    @property
    def is_development(self) -> bool:
        """True when detailed error messages may be returned to clients."""
        return self.environment in ("development", "dev", "local")


settings = Settings()


if __name__ == "__main__":
    logger.logger.setLevel("DEBUG")
    logger.debug(f"Supplier A: {mask_url(settings.supplier_a_base_url)}")
    logger.debug(f"Supplier B: {mask_url(settings.supplier_b_base_url)}")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'supplier_b_password', 'supplier_b_token'})}")
