# relief/services/factories.py
"""
Factory helpers and FastAPI dependencies for the pipeline's collaborators.

Process-wide singletons (audit outbox, report listing cache) are built lazily
from settings. Routes depend on the `get_*` functions below so tests can swap
any collaborator through `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from relief.core.config import settings
from relief.db.session import get_session_factory
from relief.services.classifier import Classifier, GeminiClassifier
from relief.services.geocoder import NominatimGeocoder, build_geocoder
from relief.services.persistence import ReportGateway
from relief.services.pipeline import SmsIntakePipeline
from relief.store.cache import ExpiringCache
from relief.store.outbox import FileOutboxStorage, MemoryOutboxStorage, Outbox


def build_outbox() -> Outbox:
    """Audit outbox backed by OUTBOX_PATH, or memory when the path is empty."""
    storage = FileOutboxStorage(settings.OUTBOX_PATH) if settings.OUTBOX_PATH else MemoryOutboxStorage()
    return Outbox(storage, max_attempts=settings.OUTBOX_MAX_ATTEMPTS)


@lru_cache(maxsize=1)
def get_outbox() -> Outbox:
    return build_outbox()


@lru_cache(maxsize=1)
def get_report_cache() -> ExpiringCache | None:
    """Listing cache shared by the triage routes and the insert path (None when disabled)."""
    if settings.REPORT_CACHE_TTL_SECONDS <= 0:
        return None
    return ExpiringCache(settings.REPORT_CACHE_TTL_SECONDS, prefix="reports:")


@lru_cache(maxsize=1)
def get_geocoder() -> NominatimGeocoder:
    return build_geocoder()


def get_classifier() -> Classifier:
    return GeminiClassifier()


def get_gateway(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    outbox: Outbox = Depends(get_outbox),
    report_cache: ExpiringCache | None = Depends(get_report_cache),
) -> ReportGateway:
    return ReportGateway(factory, outbox=outbox, report_cache=report_cache)


def get_pipeline(
    classifier: Classifier = Depends(get_classifier),
    geocoder: NominatimGeocoder = Depends(get_geocoder),
    gateway: ReportGateway = Depends(get_gateway),
) -> SmsIntakePipeline:
    return SmsIntakePipeline(
        classifier,
        geocoder,
        gateway,
        dedup_window_seconds=settings.SMS_DEDUP_WINDOW_SECONDS,
    )
