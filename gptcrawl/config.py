"""Process-wide settings loaded from the environment and ``.env``."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Skip the crawl phase entirely; aggregation still runs over stored records
    no_crawl: bool = False

    storage_dir: Path = Path("storage")
    purge_on_start: bool = True

    # Frontier tuning
    max_concurrency: int = 4
    max_request_retries: int = 3
    navigation_timeout_ms: int = 30_000
    headless: bool = True

    token_encoding: str = "cl100k_base"

    # Root level for the API server's JSON log output
    log_level: str = "INFO"

    api_host: str = "localhost"
    api_port: int = 3000

    @property
    def datasets_dir(self) -> Path:
        return self.storage_dir / "datasets"


@lru_cache
def get_settings() -> Settings:
    return Settings()
