# app/core/config.py
from __future__ import annotations

"""
# StreamVault — Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; explicit where prod needs secrets.
- CSV → list helpers for term lists and CORS origins.
- Pipeline knobs (disallowed terms, flag rate, seed, analyzer delay/timeout)
  are plain settings so tests and deployments tune them without code changes.

## Usage
    from app.core.config import settings
"""

import logging
from pathlib import Path
from typing import List, Optional, Literal

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
        - Explicit secret for JWT verification; issuer/audience optional.

    Pipeline:
        - `PIPELINE_RANDOM_SEED` makes the probabilistic classification
          fallback reproducible; leave unset in production.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "StreamVault API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = True
    REQUEST_ID_HEADER_NAME: str = "X-Request-ID"
    REQUEST_ID_TRUST_CLIENT_IDS: bool = True

    # ── Security / JWT ────────────────────────────────────────
    JWT_SECRET_KEY: SecretStr = Field(...)
    JWT_ALGORITHM: Literal["HS256", "HS384", "HS512"] = "HS256"
    JWT_ISSUER: Optional[str] = None
    JWT_AUDIENCE: Optional[str] = None
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60, ge=5, le=24 * 60)
    AUTH_FAIL_OPEN: bool = False

    # ── Redis / Rate limiting ─────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    DEFAULT_RATE_LIMIT: Optional[str] = None  # e.g., "200/minute"
    RATELIMIT_STORAGE_URI: Optional[str] = None  # fallback to memory:// if unset
    RATE_LIMIT_ENABLED: bool = True
    STREAM_RATE_LIMIT: str = "600/minute"

    # ── Database (PostgreSQL) ─────────────────────────────────
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = SecretStr("postgres")
    POSTGRES_DB: str = "streamvault"
    SQLALCHEMY_DATABASE_URI: Optional[str] = None  # full async DSN override

    # ── CORS ─────────────────────────────────────────────────
    FRONTEND_ORIGINS: Optional[str] = "http://localhost:5173,http://localhost:3000"

    # ── Storage / Streaming ──────────────────────────────────
    MEDIA_ROOT: Path = Path("uploads")
    STREAM_CHUNK_SIZE: int = Field(64 * 1024, ge=1024, le=8 * 1024 * 1024)

    # ── Ingestion pipeline ───────────────────────────────────
    PIPELINE_DISALLOWED_TERMS: str = "test_flag,flag,sensitive,nsfw,explicit"
    PIPELINE_RANDOM_FLAG_RATE: float = Field(0.1, ge=0.0, le=1.0)
    PIPELINE_RANDOM_SEED: Optional[int] = None
    ANALYZER_SIMULATED_DELAY_SECONDS: float = Field(10.0, ge=0.0)
    ANALYZER_TIMEOUT_SECONDS: Optional[float] = Field(None, gt=0.0)
    ANALYZER_IMPL: Optional[str] = None  # "package.module:ClassName"
    FFPROBE_BINARY: str = "ffprobe"

    # ── Progress broadcast ───────────────────────────────────
    BROADCAST_QUEUE_SIZE: int = Field(100, ge=1, le=10_000)

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("FRONTEND_ORIGINS", mode="before")
    @classmethod
    def _normalize_frontend_csv(cls, v):
        return None if v is None else ",".join(_split_csv(str(v)))

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def DATABASE_URL(self) -> str:
        """Sync DSN."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """Async SQLAlchemy DSN (explicit override wins)."""
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

    @property
    def disallowed_terms(self) -> List[str]:
        """Keyword list for the deterministic classification rule (order preserved)."""
        return _split_csv(self.PIPELINE_DISALLOWED_TERMS)

    @property
    def frontend_origins_list(self) -> List[str]:
        return _split_csv(self.FRONTEND_ORIGINS)

    @property
    def ratelimit_storage(self) -> str:
        return self.RATELIMIT_STORAGE_URI or "memory://"


# Singleton instance
settings = Settings()
