"""
Application settings
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root (the directory holding pyproject.toml)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "ENV", "APP_ENV"),
        description="Application environment (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "APP_LOG_LEVEL"),
        description="Minimum log level",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./headless_oauth.db",
        validation_alias=AliasChoices("DATABASE_URL", "DB_URL"),
        description="SQLAlchemy async database URL",
    )
    database_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("DATABASE_ECHO", "DB_ECHO", "SQL_ECHO"),
        description="Enable SQL query logging",
    )

    # Redis
    redis_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("REDIS_URL", "CACHE_REDIS_URL"),
        description="Redis URL for the JWKS / discovery cache",
    )

    # Session tokens
    secret_key: str = Field(
        default="change-me",
        validation_alias=AliasChoices("SECRET_KEY", "JWT_SECRET_KEY", "AUTH_SECRET_KEY"),
        description="JWT secret key (set it in the environment)",
    )
    algorithm: str = Field(
        default="HS256",
        validation_alias=AliasChoices("JWT_ALGORITHM", "AUTH_ALGORITHM"),
        description="JWT signing algorithm",
    )
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 3,  # 3 days
        validation_alias=AliasChoices("ACCESS_TOKEN_EXPIRE_MINUTES", "JWT_ACCESS_TOKEN_EXPIRE_MINUTES"),
        description="Access token expiration time in minutes",
    )

    # OAuth
    oauth_config_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OAUTH_CONFIG_PATH", "OAUTH_PROVIDERS_FILE"),
        description="Path to oauth_providers.yaml (defaults to config/oauth_providers.yaml)",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("OAUTH_HTTP_TIMEOUT", "HTTP_TIMEOUT_SECONDS"),
        description="Timeout for every outbound provider call",
    )


settings = Settings()
