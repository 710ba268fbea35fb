"""Shared fixtures: a throwaway SQLite database and the app wired to fakes."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from fakes import GALLE, FLOOD_RESULT, FakeClassifier, FakeGeocoder
from relief.core.config import settings
from relief.db.session import create_session_factory, get_session_factory, init_db
from relief.main import app
from relief.services.factories import get_classifier, get_geocoder, get_outbox, get_report_cache
from relief.store.cache import ExpiringCache
from relief.store.outbox import MemoryOutboxStorage, Outbox

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def db_factory(tmp_path):
    """Session factory bound to a fresh SQLite file with all tables created."""
    # NullPool: each asyncio.run() gets its own connection and event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'relief.db'}", poolclass=NullPool)
    asyncio.run(init_db(engine))
    yield create_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def base_settings(monkeypatch):
    monkeypatch.setattr(settings, "SMS_WEBHOOK_SECRET", None)
    monkeypatch.setattr(settings, "SMS_DEDUP_WINDOW_SECONDS", 0)
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr(settings, "OUTBOX_RETENTION_DAYS", 7)
    return settings


@pytest.fixture
def wired(db_factory, base_settings):
    """TestClient plus handles on every faked collaborator."""
    ctx = SimpleNamespace(
        db=db_factory,
        classifier=FakeClassifier(FLOOD_RESULT),
        geocoder=FakeGeocoder(GALLE),
        outbox=Outbox(MemoryOutboxStorage()),
        cache=ExpiringCache(60, prefix="reports:"),
    )
    app.dependency_overrides[get_session_factory] = lambda: ctx.db
    app.dependency_overrides[get_classifier] = lambda: ctx.classifier
    app.dependency_overrides[get_geocoder] = lambda: ctx.geocoder
    app.dependency_overrides[get_outbox] = lambda: ctx.outbox
    app.dependency_overrides[get_report_cache] = lambda: ctx.cache

    # No context manager: startup would touch the configured DATABASE_URL
    ctx.client = TestClient(app)
    yield ctx
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}
