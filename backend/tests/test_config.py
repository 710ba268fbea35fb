"""Settings parsing from environment variables."""

from __future__ import annotations

from relief.core.config import Settings


def test_defaults(monkeypatch):
    for key in ("SMS_WEBHOOK_SECRET", "SMS_DEDUP_WINDOW_SECONDS", "GEMINI_MODEL", "REPORT_CACHE_TTL_SECONDS"):
        monkeypatch.delenv(key, raising=False)

    s = Settings(_env_file=None)

    assert s.SMS_WEBHOOK_SECRET is None
    assert s.SMS_DEDUP_WINDOW_SECONDS == 0
    assert s.GEMINI_MODEL == "gemini-flash-lite-latest"
    assert s.REPORT_CACHE_TTL_SECONDS == 300
    assert s.MAX_BODY_BYTES == s.MAX_BODY_KB * 1024


def test_env_overrides_and_normalization(monkeypatch):
    monkeypatch.setenv("ENV", " PROD ")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("SMS_WEBHOOK_SECRET", "   ")
    monkeypatch.setenv("ADMIN_API_TOKEN", " token ")
    monkeypatch.setenv("SMS_DEDUP_WINDOW_SECONDS", "900")

    s = Settings(_env_file=None)

    assert s.ENV == "prod"
    assert s.LOG_LEVEL == "DEBUG"
    assert s.SMS_WEBHOOK_SECRET is None
    assert s.ADMIN_API_TOKEN == "token"
    assert s.SMS_DEDUP_WINDOW_SECONDS == 900
