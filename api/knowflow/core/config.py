from pydantic_settings import BaseSettings
import os
from pathlib import Path
import logging

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Look for .env in api directory (parent of knowflow package)
api_dir = Path(__file__).parent.parent.parent
env_path = api_dir / ".env"

if env_path.exists():
    load_dotenv(env_path, override=True)
    _logger.info(f"Loaded .env file from: {env_path}")
else:
    # Fallback to current directory
    current_env = Path(".env")
    if current_env.exists():
        load_dotenv(current_env, override=True)
        _logger.info(f"Loaded .env file from: {current_env.absolute()}")
    else:
        _logger.debug(f".env file not found at {env_path} or {current_env.absolute()}")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database - SQLite file next to the process unless DATABASE_URL is set
    database_url: str = "sqlite:///./knowflow.db"

    # API
    api_v1_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    # development/dev/local expose tracebacks in 500 responses
    environment: str = "production"

    # Scheduler pool sizing
    max_today_cards: int = 20
    candidate_pool_multiplier: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        # Railway-style hosts provide DATABASE_URL uppercase
        if not kwargs.get("database_url") and os.getenv("DATABASE_URL"):
            kwargs["database_url"] = os.getenv("DATABASE_URL", "")
        super().__init__(**kwargs)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def candidate_limit(self) -> int:
        return self.max_today_cards * self.candidate_pool_multiplier


# Create settings instance
settings = Settings()

if not settings.database_url:
    raise ValueError("DATABASE_URL must not be empty")
