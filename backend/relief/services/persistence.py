# relief/services/persistence.py
"""
Persistence gateway for the SMS pipeline.

Responsibilities:
- Insert one built report row and hand back its generated id
- Write the audit log row for every processed delivery (best-effort)
- Park audit rows the database refused in the outbox, and replay them later
- Look up a recent identical delivery when the dedup window is enabled

Nothing here raises database errors to the caller: inserts report failure via
`InsertOutcome.error`, audit writes are swallowed after logging.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from relief.db.models import REPORT_MODELS, SmsProcessingLog
from relief.services.record_builder import BuiltRecord
from relief.store.cache import ExpiringCache
from relief.store.outbox import DrainResult, Outbox, OutboxEntry
from relief.utils.parsers import utcnow

logger = logging.getLogger(__name__)

AUDIT_KIND = "sms_processing_log"


def _utcnow() -> datetime:
    return utcnow().replace(microsecond=0)


@dataclass
class AuditEntry:
    """One sms_processing_logs row, in a JSON-friendly form for the outbox."""
    sender_phone: str
    raw_message: str
    detected_category: Optional[str]
    processing_success: bool
    created_record_id: Optional[str] = None
    error_message: Optional[str] = None
    sms_id: Optional[str] = None
    device_id: Optional[str] = None
    message_hash: Optional[str] = None
    processed_at: str = field(default_factory=lambda: _utcnow().isoformat())


@dataclass(frozen=True)
class InsertOutcome:
    record_id: Optional[str]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record_id is not None


class ReportGateway:
    """Inserts reports and audit rows through an async session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        outbox: Optional[Outbox] = None,
        report_cache: Optional[ExpiringCache] = None,
    ) -> None:
        self._session_factory = session_factory
        self.outbox = outbox
        self._report_cache = report_cache

    async def insert_report(self, record: BuiltRecord) -> InsertOutcome:
        model = REPORT_MODELS[record.category]
        try:
            async with self._session_factory() as session:
                row = model(**record.values)
                session.add(row)
                await session.commit()
                record_id = str(row.id)
        except SQLAlchemyError as e:
            logger.error("Insert %s error: %s", record.table, e)
            return InsertOutcome(record_id=None, error=str(e.__cause__ or e))

        if self._report_cache is not None:
            self._report_cache.invalidate_matching(lambda k: k.startswith(f"{record.table}:"))
        return InsertOutcome(record_id=record_id)

    async def _write_audit(self, entry: AuditEntry) -> None:
        values = asdict(entry)
        values["processed_at"] = datetime.fromisoformat(entry.processed_at)
        async with self._session_factory() as session:
            session.add(SmsProcessingLog(**values))
            await session.commit()

    async def log_processing(self, entry: AuditEntry) -> bool:
        """
        Best-effort audit write. Returns True when the row reached the database.

        On failure the row is queued in the outbox (if one is configured); a
        failing outbox is logged as well and never raised.
        """
        try:
            await self._write_audit(entry)
            return True
        except SQLAlchemyError as e:
            logger.warning("SMS log insert skipped (table may not exist): %s", e)
        except Exception as e:
            logger.error("SMS log insert failed unexpectedly: %s", e, exc_info=True)

        if self.outbox is not None:
            try:
                self.outbox.enqueue(AUDIT_KIND, asdict(entry))
            except Exception as e:
                logger.error("Could not queue audit row in outbox: %s", e)
        return False

    async def replay_audit_outbox(self) -> DrainResult:
        """Retry parked audit rows in FIFO order."""
        if self.outbox is None:
            return DrainResult()

        async def _handler(item: OutboxEntry) -> None:
            await self._write_audit(AuditEntry(**item.payload))

        return await self.outbox.drain(_handler, kind=AUDIT_KIND)

    async def find_recent_duplicate(self, message_hash: str, since: datetime) -> Optional[Tuple[str, str]]:
        """
        Most recent successful delivery with the same content key since `since`.

        Returns (record_id, category) or None; lookup errors count as "no duplicate".
        """
        stmt = (
            select(SmsProcessingLog.created_record_id, SmsProcessingLog.detected_category)
            .where(SmsProcessingLog.message_hash == message_hash)
            .where(SmsProcessingLog.processing_success.is_(True))
            .where(SmsProcessingLog.created_record_id.is_not(None))
            .where(SmsProcessingLog.processed_at >= since)
            .order_by(SmsProcessingLog.processed_at.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).first()
        except SQLAlchemyError as e:
            logger.warning("Duplicate lookup failed, processing normally: %s", e)
            return None

        if row is None or row[1] not in REPORT_MODELS:
            return None
        return str(row[0]), str(row[1])
