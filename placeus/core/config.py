# placeus/core/config.py
from __future__ import annotations

"""
# Placeus · Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; storage credentials are only demanded at startup.
- CSV → list helpers for the CORS allow-list.
- Identity-provider audience/issuer derived from the project id when unset.

## Usage
    from placeus.core.config import settings
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)
load_dotenv()  # harmless in prod; convenient in dev

GOOGLE_SECURETOKEN_KEYS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing at startup."""


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

    Storage:
        - Bucket and region are required to serve traffic; see `require_storage`.
        - Explicit keys are optional (the standard AWS credential chain applies).

    Auth:
        - Tokens are verified against keys published at `AUTH_KEYS_URL`.
        - `AUTH_AUDIENCE` / `AUTH_ISSUER` default from `AUTH_PROJECT_ID`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "Placeus API"
    VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = True
    PORT: int = 3000

    # ── Storage (S3) ──────────────────────────────────────────
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[SecretStr] = None
    AWS_REGION: Optional[str] = "ap-south-1"
    AWS_BUCKET_NAME: Optional[str] = None
    AWS_S3_ENDPOINT_URL: Optional[str] = None
    MEDIA_PREFIX: str = "courses"

    # ── CORS ──────────────────────────────────────────────────
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,https://placeus.onrender.com"

    # ── Identity provider ─────────────────────────────────────
    AUTH_PROJECT_ID: str = "placeus"
    AUTH_AUDIENCE: Optional[str] = None
    AUTH_ISSUER: Optional[str] = None
    AUTH_KEYS_URL: str = GOOGLE_SECURETOKEN_KEYS_URL
    AUTH_KEYS_TTL_SECONDS: int = Field(3600, ge=1)
    AUTH_KEYS_FETCH_TIMEOUT: float = Field(5.0, gt=0)
    AUTH_ALGORITHMS: str = "RS256"

    # ── Transcoding ───────────────────────────────────────────
    TRANSCODER_BINARY: str = "ffmpeg"
    TRANSCODE_SCRATCH_DIR: Path = Path("/tmp/placeus")
    TRANSCODE_TIMEOUT_SECONDS: float = Field(1800.0, gt=0)
    TRANSCODE_CONCURRENCY: int = Field(2, ge=1, le=32)
    TRANSCODE_MAX_ATTEMPTS: int = Field(3, ge=1, le=10)
    TRANSCODE_RETRY_BASE_DELAY: float = Field(1.0, ge=0)
    TRANSCODE_SHUTDOWN_GRACE_SECONDS: float = Field(30.0, ge=0)

    # ── Limits ────────────────────────────────────────────────
    MAX_UPLOAD_BYTES: int = Field(1024 * 1024 * 1024, ge=1)
    MAX_COMMENT_LENGTH: int = Field(2000, ge=1)

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("AUTH_ALGORITHMS")
    @classmethod
    def _asymmetric_only(cls, v: str) -> str:
        algs = [a.upper() for a in _split_csv(v)]
        if not algs:
            raise ValueError("AUTH_ALGORITHMS must name at least one algorithm")
        bad = [a for a in algs if not a.startswith(("RS", "ES", "PS"))]
        if bad:
            raise ValueError(f"Only asymmetric algorithms are accepted, got {bad}")
        return ",".join(algs)

    @field_validator("MEDIA_PREFIX")
    @classmethod
    def _strip_prefix(cls, v: str) -> str:
        s = v.strip().strip("/")
        if not s:
            raise ValueError("MEDIA_PREFIX must not be empty")
        return s

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS allow-list from the `BACKEND_CORS_ORIGINS` CSV."""
        return _split_csv(self.BACKEND_CORS_ORIGINS)

    @property
    def auth_algorithms_list(self) -> List[str]:
        return _split_csv(self.AUTH_ALGORITHMS)

    @property
    def auth_audience(self) -> str:
        return self.AUTH_AUDIENCE or self.AUTH_PROJECT_ID

    @property
    def auth_issuer(self) -> str:
        return self.AUTH_ISSUER or f"https://securetoken.google.com/{self.AUTH_PROJECT_ID}"

    def require_storage(self) -> None:
        """Fail fast when the bucket configuration needed to serve traffic is absent."""
        missing = [
            name
            for name in ("AWS_BUCKET_NAME", "AWS_REGION")
            if not getattr(self, name)
        ]
        if missing:
            log.critical("Missing required storage configuration: %s", ", ".join(missing))
            raise ConfigurationError(f"Missing required storage configuration: {', '.join(missing)}")


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Singleton instance
settings = get_settings()
