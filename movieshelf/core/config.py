# movieshelf/core/config.py
from __future__ import annotations

"""
# MovieShelf · Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; explicit where prod needs secrets.
- CSV → list helpers for CORS.
- Optional S3 settings so imports never crash in dev.

## Usage
    from movieshelf.core.config import settings
"""

import logging
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)
load_dotenv()  # harmless in prod; convenient in dev


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _split_csv(v: str | None) -> list[str]:
    """Split a comma-separated string into a trimmed list (empty-safe)."""
    if not v:
        return []
    return [s.strip() for s in str(v).split(",") if s and s.strip()]


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global application settings sourced from environment.

    Security:
        - Explicit secret for JWT; HS* algorithms only.

    Storage:
        - Posters live in a single private bucket and are served through
          short-lived presigned GET URLs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "MovieShelf API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = True

    # ── Security / JWT ────────────────────────────────────────
    JWT_SECRET_KEY: SecretStr = Field(...)
    JWT_ALGORITHM: Literal["HS256", "HS384", "HS512"] = "HS256"
    JWT_ISSUER: Optional[str] = None
    JWT_AUDIENCE: Optional[str] = None
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24, ge=5, le=7 * 24 * 60)
    PASSWORD_MIN_LENGTH: int = Field(6, ge=6, le=128)

    # ── Redis / Rate limiting ─────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    RATELIMIT_STORAGE_URI: Optional[str] = None

    # ── Database (PostgreSQL) ─────────────────────────────────
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = Field(...)
    POSTGRES_DB: str = "movieshelf"

    # ── CORS ─────────────────────────────────────────────────
    FRONTEND_ORIGINS: Optional[str] = None  # CSV
    ALLOW_ORIGINS_REGEX: Optional[str] = None

    # ── Object storage (optional in dev) ──────────────────────
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[SecretStr] = None
    AWS_SESSION_TOKEN: Optional[SecretStr] = None
    AWS_REGION: str = "us-east-1"
    AWS_BUCKET_NAME: Optional[str] = None
    AWS_S3_ENDPOINT_URL: Optional[str] = None  # LocalStack / MinIO

    # ── Posters ───────────────────────────────────────────────
    POSTER_SIGN_TTL_SECONDS: int = Field(3600, ge=60, le=7 * 24 * 60 * 60)
    POSTER_MAX_BYTES: int = Field(5 * 1024 * 1024, ge=1024)
    POSTER_KEY_PREFIX: str = "posters/"

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("FRONTEND_ORIGINS", mode="before")
    @classmethod
    def _normalize_frontend_csv(cls, v):
        return None if v is None else ",".join(_split_csv(str(v)))

    @field_validator("POSTER_KEY_PREFIX", mode="before")
    @classmethod
    def _normalize_poster_prefix(cls, v) -> str:
        s = str(v or "").strip().strip("/")
        return f"{s}/" if s else ""

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENV.lower() == "development"

    @property
    def DATABASE_URL(self) -> str:
        """Sync DSN."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """Async SQLAlchemy DSN."""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

    @property
    def frontend_origins_list(self) -> List[str]:
        return _split_csv(self.FRONTEND_ORIGINS)

    @property
    def ratelimit_storage(self) -> Optional[str]:
        """
        Storage URI for SlowAPI/limits; prefer RATELIMIT_STORAGE_URI,
        otherwise use REDIS_URL when present.
        """
        return self.RATELIMIT_STORAGE_URI or (self.REDIS_URL if self.REDIS_URL else None)


# Singleton instance
settings = Settings()
