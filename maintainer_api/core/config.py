# maintainer_api/core/config.py
import ipaddress
from pathlib import Path
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from maintainer_api.core.exceptions import ConfigurationError
from maintainer_api.core.logging_config import get_logger


class Settings(BaseSettings):
    """Application settings, read from the environment and an optional .env file"""
    APP_NAME: str = "XIV Dye Maintainer API"
    ENVIRONMENT: str = "development"

    # Server - loopback only
    HOST: str = "127.0.0.1"
    PORT: int = 3001

    # Data files (relative paths are resolved against CORE_PATH)
    CORE_PATH: Path = Path("../xivdyetools-core")
    COLORS_FILE: str = "src/data/colors_xiv.json"
    LOCALES_DIR: str = "src/data/locales"
    SUPPORTED_LOCALES: List[str] = ["en", "ja", "de", "fr", "ko", "zh"]

    # Authentication
    MAINTAINER_API_KEY: Optional[SecretStr] = Field(default=None)
    SESSION_TTL_SECONDS: int = 24 * 60 * 60

    # Request limits
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    MAX_BODY_BYTES: int = 10 * 1024 * 1024

    # Rate limits (limits notation)
    RATE_LIMIT_GLOBAL: str = "1000/15 minutes"
    RATE_LIMIT_WRITE: str = "30/minute"
    RATE_LIMIT_SESSION: str = "10/15 minutes"

    CORS_ORIGINS: List[str] = ["http://localhost:5174"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_JSON: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @field_validator("HOST")
    @classmethod
    def _loopback_only(cls, value: str) -> str:
        if value == "localhost":
            return value
        try:
            address = ipaddress.ip_address(value)
        except ValueError as e:
            raise ValueError(f"HOST must be a loopback address, got {value!r}") from e
        if not address.is_loopback:
            raise ValueError(f"HOST must be a loopback address, got {value!r}")
        return value

    @property
    def core_path(self) -> Path:
        return self.CORE_PATH.expanduser().resolve()

    @property
    def colors_path(self) -> Path:
        return self.core_path / self.COLORS_FILE

    @property
    def locales_path(self) -> Path:
        return self.core_path / self.LOCALES_DIR

    @property
    def api_key(self) -> Optional[str]:
        """The configured shared secret, or None when unset or blank"""
        if self.MAINTAINER_API_KEY is None:
            return None
        return self.MAINTAINER_API_KEY.get_secret_value() or None

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"


# Module-level settings instance
settings = Settings()


def get_settings() -> Settings:
    return settings


def validate_required_settings(current: Optional[Settings] = None) -> bool:
    """Check optional settings; warns but never fails"""
    current = current or settings
    logger = get_logger(__name__)

    if not current.api_key:
        logger.warning("api_key_not_configured", detail="X-API-Key authentication is disabled")
        logger.warning("session_token_required", detail="Mutations need a token from POST /api/auth/session")
        return False

    return True


def ensure_not_production(current: Optional[Settings] = None) -> None:
    """Refuse to run in production; this is a local development tool"""
    current = current or settings
    if current.is_production:
        raise ConfigurationError(
            "Maintainer service must NOT run in production",
            component="environment",
            details={"environment": current.ENVIRONMENT}
        )
