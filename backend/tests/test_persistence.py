"""Unit tests for the report/audit persistence gateway."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from fakes import count_rows, fetch_all
from relief.db.models import Disaster, SmsProcessingLog
from relief.db.session import create_session_factory, init_db
from relief.schemas.reports import ClassifiedReport
from relief.services.persistence import AUDIT_KIND, AuditEntry, ReportGateway
from relief.services.record_builder import build_record
from relief.store.cache import ExpiringCache
from relief.store.outbox import Outbox


def _record():
    report = ClassifiedReport(
        category="disaster",
        confidence=0.9,
        data={"disaster_type": "fire", "severity": "critical", "location_address": "Colombo"},
        raw_message="Fire in Colombo market",
    )
    return build_record(report, "+94771234567", now=datetime(2025, 10, 5, 13, 0, 0))


def _audit(**overrides) -> AuditEntry:
    values = dict(
        sender_phone="+94771234567",
        raw_message="Fire in Colombo market",
        detected_category="disaster",
        processing_success=True,
        message_hash="abc",
    )
    values.update(overrides)
    return AuditEntry(**values)


def test_insert_returns_generated_id_and_invalidates_listing(db_factory):
    cache = ExpiringCache(60)
    cache.set("disasters:all:20:0", "stale")
    cache.set("animal_rescues:all:20:0", "keep")
    gateway = ReportGateway(db_factory, report_cache=cache)

    outcome = asyncio.run(gateway.insert_report(_record()))

    assert outcome.ok
    assert len(outcome.record_id) == 36
    assert fetch_all(db_factory, Disaster)[0].id == outcome.record_id
    assert cache.get("disasters:all:20:0") is None
    assert cache.get("animal_rescues:all:20:0") == "keep"


def test_audit_failure_is_parked_then_replayed(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'late.db'}", poolclass=NullPool)
    factory = create_session_factory(engine)
    outbox = Outbox()
    gateway = ReportGateway(factory, outbox=outbox)

    # Tables do not exist yet: the write fails quietly
    assert asyncio.run(gateway.log_processing(_audit())) is False
    failed_insert = asyncio.run(gateway.insert_report(_record()))
    assert failed_insert.ok is False
    assert "no such table" in failed_insert.error
    assert [e.kind for e in outbox.entries()] == [AUDIT_KIND]

    asyncio.run(init_db(engine))
    result = asyncio.run(gateway.replay_audit_outbox())

    assert result.success == 1
    assert outbox.entries() == []
    assert count_rows(factory, SmsProcessingLog) == 1
    asyncio.run(engine.dispose())


def test_find_recent_duplicate(db_factory):
    gateway = ReportGateway(db_factory)
    now = datetime(2025, 10, 5, 13, 0, 0)
    asyncio.run(gateway.log_processing(_audit(created_record_id="rec-1", processed_at=now.isoformat())))
    asyncio.run(gateway.log_processing(_audit(message_hash="failed", processing_success=False, processed_at=now.isoformat())))

    hit = asyncio.run(gateway.find_recent_duplicate("abc", now - timedelta(minutes=5)))
    too_old = asyncio.run(gateway.find_recent_duplicate("abc", now + timedelta(seconds=1)))
    failure_only = asyncio.run(gateway.find_recent_duplicate("failed", now - timedelta(minutes=5)))

    assert hit == ("rec-1", "disaster")
    assert too_old is None
    assert failure_only is None


def test_unexpected_audit_error_is_swallowed_and_parked(db_factory):
    class CrashingGateway(ReportGateway):
        async def _write_audit(self, entry):
            raise RuntimeError("driver went away")

    outbox = Outbox()
    gateway = CrashingGateway(db_factory, outbox=outbox)

    assert asyncio.run(gateway.log_processing(_audit())) is False
    assert [e.payload["message_hash"] for e in outbox.entries()] == ["abc"]


def test_broken_outbox_does_not_raise(db_factory):
    class BrokenOutbox(Outbox):
        def enqueue(self, kind, payload):
            raise TypeError("not serializable")

    class CrashingGateway(ReportGateway):
        async def _write_audit(self, entry):
            raise RuntimeError("driver went away")

    gateway = CrashingGateway(db_factory, outbox=BrokenOutbox())

    assert asyncio.run(gateway.log_processing(_audit())) is False
