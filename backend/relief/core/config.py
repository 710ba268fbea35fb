# relief/core/config.py
"""
Central configuration for the Relief SMS intake backend.

This module defines a single `settings` object (Pydantic BaseSettings) that reads
configuration from environment variables and a local `.env` file.

Guiding principles:
- Config is declared once, imported everywhere.
- Sensible defaults for local dev (SQLite, public Nominatim).
- Secrets (Gemini key, webhook secret, admin token) live in env vars only.
"""

from __future__ import annotations

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and optional `.env`.

    `.env` location:
      - uvicorn is run from `backend/`, so `.env` should live in `backend/.env`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # -----------------------
    # Runtime
    # -----------------------
    ENV: str = Field(default="dev", description="Environment: dev|test|prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level (e.g., INFO, DEBUG)")

    # -----------------------
    # API / CORS
    # -----------------------
    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins for the responder dashboard",
    )

    MAX_BODY_KB: int = Field(
        default=64,
        ge=1,
        le=10240,
        description="Max request body size in kilobytes (SMS webhooks are tiny)",
    )

    @property
    def MAX_BODY_BYTES(self) -> int:
        """Derived request body limit in bytes."""
        return int(self.MAX_BODY_KB) * 1024

    # -----------------------
    # Database
    # -----------------------
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/relief.db",
        description="SQLAlchemy async database URL",
    )

    # -----------------------
    # Gemini (Google AI Studio)
    # -----------------------
    GEMINI_API_KEY: str | None = Field(
        default=None,
        description="Gemini API key (unset means every SMS fails classification)",
    )
    GEMINI_MODEL: str = Field(
        default="gemini-flash-lite-latest",
        description="Gemini model name",
    )
    GEMINI_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    GEMINI_TOP_K: int = Field(default=1, ge=1)
    GEMINI_TOP_P: float = Field(default=0.95, ge=0.0, le=1.0)
    GEMINI_MAX_OUTPUT_TOKENS: int = Field(default=2048, ge=1)
    GEMINI_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # -----------------------
    # SMS gateway webhook
    # -----------------------
    SMS_WEBHOOK_SECRET: str | None = Field(
        default=None,
        description="Shared HMAC secret; unset disables signature verification",
    )
    SMS_DEDUP_WINDOW_SECONDS: int = Field(
        default=0,
        ge=0,
        description="Window for suppressing identical sender+message deliveries (0 disables)",
    )

    # -----------------------
    # Geocoding (OpenStreetMap Nominatim)
    # -----------------------
    GEOCODER_URL: str = Field(
        default="https://nominatim.openstreetmap.org/search",
        description="Nominatim-compatible search endpoint",
    )
    GEOCODER_USER_AGENT: str = Field(default="DisasterManagementSMS/1.0")
    GEOCODER_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    GEOCODE_CACHE_TTL_SECONDS: int = Field(
        default=0,
        ge=0,
        description="TTL for cached geocoder hits (0 disables caching)",
    )

    # -----------------------
    # Triage API
    # -----------------------
    REPORT_CACHE_TTL_SECONDS: int = Field(default=300, ge=0)
    ADMIN_API_TOKEN: str | None = Field(
        default=None,
        description="Token required in X-Admin-Token (unset disables admin routes)",
    )

    # -----------------------
    # Audit outbox
    # -----------------------
    OUTBOX_PATH: str = Field(
        default="./data/audit_outbox.json",
        description="File backing the audit-log outbox (empty keeps it in memory)",
    )
    OUTBOX_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    OUTBOX_RETENTION_DAYS: int = Field(default=7, ge=1)

    # -----------------------
    # Validators / normalizers
    # -----------------------
    @field_validator("ENV")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        return (v or "dev").strip().lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @field_validator("CORS_ALLOW_ORIGINS")
    @classmethod
    def _clean_cors_origins(cls, v: List[str]) -> List[str]:
        cleaned = []
        for origin in v or []:
            o = (origin or "").strip()
            if o:
                cleaned.append(o)
        return cleaned

    @field_validator("DATABASE_URL", "GEMINI_MODEL", "GEOCODER_URL", "OUTBOX_PATH")
    @classmethod
    def _strip_strings(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("GEMINI_API_KEY", "SMS_WEBHOOK_SECRET", "ADMIN_API_TOKEN")
    @classmethod
    def _blank_secret_is_unset(cls, v: str | None) -> str | None:
        # Empty env vars (SECRET=) must not enable half-configured features.
        if v is None:
            return None
        v = v.strip()
        return v or None


# Singleton instance imported across the codebase.
settings = Settings()
