"""Application configuration using Pydantic Settings"""

import logging
import re
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN_PREFIXES = [
    "twitchoverlayapp://",
    "http://localhost:5173",
    "https://www.overwolf.com",
    "overwolf-extension://",
    "twitchoverlayappnative://",
]


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch application credentials
    client_id: str = Field(..., description="Twitch application Client ID")
    client_secret: str = Field(..., description="Twitch application Client Secret")

    # Session tokens issued by the auth layer
    jwt_secret_key: str = Field(..., description="Secret key for session token verification")
    jwt_algorithm: str = Field(default="HS256", description="Session token signing algorithm")

    # Account store
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    allowed_origin_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ORIGIN_PREFIXES),
        description="Origins accepted by CORS, matched by prefix",
    )

    # Upstream
    http_timeout: float = Field(default=10.0, description="Twitch request timeout in seconds")
    app_token_expiry_buffer: int = Field(
        default=60, description="Seconds before expiry at which the app token is refreshed"
    )
    app_token_max_ttl: int = Field(
        default=24 * 60 * 60, description="Upper bound on how long an app token is cached"
    )

    # Keep-Alive
    enable_keep_alive: bool = Field(default=True, description="Enable heartbeat keep-alive task")
    keep_alive_interval: int = Field(default=300, description="Heartbeat interval in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("client_id", "client_secret")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @property
    def cors_origin_regex(self) -> str:
        """Regex accepting any origin that starts with an allowed prefix"""
        return "^(" + "|".join(re.escape(p) for p in self.allowed_origin_prefixes) + ").*"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
