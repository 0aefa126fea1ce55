"""Settings for the matching service, read from the environment or a .env file."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

# Project-root .env, independent of the working directory
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Environment-driven configuration (``DATABASE_URL``, ``LOG_LEVEL`` ...)."""

    # Storage
    database_url: str = "sqlite+aiosqlite:///./realty_crm.db"
    sql_echo: bool = False

    # HTTP
    cors_origins: str = "http://localhost:3000"
    upstream_retry_after_seconds: int = 5

    # Matching
    match_include_closed_inventory: bool = False
    recommendation_max_new: Optional[int] = None

    # Runtime
    debug: bool = True
    log_level: Optional[str] = None

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def allowed_origins(self) -> list[str]:
        """Configured CORS origins; debug mode opens the API to any origin."""
        if self.debug:
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "INFO" if self.debug else "WARNING"


@lru_cache
def get_settings() -> Settings:
    return Settings()
