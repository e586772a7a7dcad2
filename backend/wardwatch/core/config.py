"""
Configuration settings for the WardWatch alert service.
Loads settings from environment variables with secure defaults.
"""

import json
from typing import List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_list_field(v: Union[str, List[str], None], default: List[str] = None) -> List[str]:
    """Parse a list field from environment variable or value.

    Handles:
    - JSON arrays: '["a", "b", "c"]'
    - Comma-separated strings: 'a,b,c'
    - Empty strings: '' -> default or []
    - None: -> default or []
    - Already a list: returns as-is
    """
    if v is None or v == "":
        return default or []
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return default or []
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in v.split(",") if item.strip()]
    return default or []


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        env_parse_none_str="None",
    )

    # General Settings
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # ⚠️ SECURITY WARNING: AUTH_DISABLED
    # When True every request is treated as an admin caller.
    # Local development and tests only.
    AUTH_DISABLED: bool = False

    # Database Settings
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "postgres"
    DB_PORT: int = 5432
    DB_NAME: str = "municipal"
    DB_USER: str = "municipal"
    DB_PASSWORD: str = "municipal"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40

    # Token verification (tokens are issued by the main municipal backend)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # CORS and Security
    CORS_ORIGINS: Union[str, List[str]] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    ALLOWED_HOSTS: Union[str, List[str]] = [
        "localhost",
        "localhost:8000",
        "127.0.0.1",
        "127.0.0.1:8000",
        "backend",
        "backend:8000",
        "testserver",
    ]

    # Alert engine
    ALERT_SCHEDULER_ENABLED: bool = True
    ALERT_SCHEDULE_MINUTES: int = 30
    ALERT_TIMEZONE: str = "Asia/Kolkata"
    ALERT_CHECK_AFTER_HOUR: int = 9
    ALERT_GEO_VIOLATIONS_THRESHOLD: int = 3
    ALERT_CHECK_WORKERS: int = 4

    # SMS gateway (optional; alerts are stored either way)
    SMS_GATEWAY_URL: Optional[str] = None
    SMS_GATEWAY_TOKEN: Optional[str] = None
    SMS_TIMEOUT_SECONDS: int = 10

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or JSON array."""
        return parse_list_field(v, ["http://localhost:3000"])

    @field_validator("ALLOWED_HOSTS", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v):
        """Parse ALLOWED_HOSTS from comma-separated string or JSON array."""
        return parse_list_field(v, ["localhost", "127.0.0.1", "backend"])

    @field_validator("ALERT_SCHEDULE_MINUTES")
    @classmethod
    def validate_schedule_minutes(cls, v: int) -> int:
        if v <= 0 or 60 % v != 0:
            raise ValueError("ALERT_SCHEDULE_MINUTES must be a positive divisor of 60")
        return v

    @field_validator("ALERT_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("ALERT_CHECK_AFTER_HOUR")
    @classmethod
    def validate_cutoff_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("ALERT_CHECK_AFTER_HOUR must be between 0 and 23")
        return v

    @field_validator("ALERT_GEO_VIOLATIONS_THRESHOLD")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("ALERT_CHECK_WORKERS", "SMS_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def alert_timezone(self) -> ZoneInfo:
        return ZoneInfo(self.ALERT_TIMEZONE)


# Create global settings instance
settings = Settings()
