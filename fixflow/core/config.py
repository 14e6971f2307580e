# fixflow/core/config.py
from typing import Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
import logging


class Settings(BaseSettings):
    """Application settings"""
    APP_NAME: str = "fixflow"
    DEBUG: bool = False
    ENV: str = "production"

    # LLM classifier
    OPENAI_API_KEY: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "OPENAI_APIKEY")
    )
    CLASSIFIER_MODEL: str = "gpt-4o-mini"
    CLASSIFIER_TEMPERATURE: float = 0.1
    CLASSIFIER_TIMEOUT_SECONDS: float = 15.0

    # Storage; in-memory stores are used when REDIS_URL is unset
    REDIS_URL: Optional[str] = None
    SESSION_KEY_PREFIX: str = "fixflow"

    # HTTP API
    API_KEY: Optional[str] = None
    RATE_LIMIT_TIER: str = "default"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }


# Module-wide singleton
settings = Settings()


def validate_required_settings() -> bool:
    """Log missing environment variables; never raises."""
    missing = []

    if not settings.OPENAI_API_KEY:
        missing.append("OPENAI_API_KEY/OPENAI_APIKEY")

    if not settings.API_KEY:
        missing.append("API_KEY")

    if missing:
        logger = logging.getLogger(__name__)
        logger.warning(f"Missing environment variables: {', '.join(missing)}")
        logger.warning("Some features will be degraded (pattern-only interpretation, generated API key).")
        return False

    if not settings.REDIS_URL:
        logging.getLogger(__name__).info("REDIS_URL not set - sessions, metrics and issues are kept in memory")

    return True
