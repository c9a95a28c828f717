from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for upstream access and the monitoring loop.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ResRobot (trip search and station lookup)
    api_key: str | None = Field(default=None, alias="RESROBOT_API_KEY")
    resrobot_base_url: str = "https://api.resrobot.se/v2.1"
    trips_per_search: int = 6
    max_station_results: int = 10

    # Local time of the transit network; upstream dates/times are in this zone
    timezone: str = Field(default="Europe/Stockholm", alias="COMMUTE_TIMEZONE")

    # Monitoring loop
    tick_seconds: float = Field(default=60.0, alias="COMMUTE_TICK_SECONDS")
    max_concurrency: int = Field(default=8, alias="COMMUTE_MAX_CONCURRENCY")
    upstream_timeout_seconds: float = Field(default=10.0, alias="COMMUTE_UPSTREAM_TIMEOUT")
    probe_spacing_seconds: float = Field(default=0.2, alias="COMMUTE_PROBE_SPACING")

    # Station lookups
    station_cache_ttl_seconds: float = Field(default=1800.0, alias="COMMUTE_STATION_CACHE_TTL")

    db_path: str = Field(default="data/commute.db", alias="COMMUTE_DB_PATH")

    @property
    def tzinfo(self) -> ZoneInfo:
        """The transit network's timezone as a tzinfo."""
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Get settings (cached singleton).

    Returns:
        Settings with values from .env file or environment variables.
    """
    return Settings()
