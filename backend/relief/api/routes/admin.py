# relief/api/routes/admin.py
"""
Admin endpoints (require X-Admin-Token).

- GET  /admin/sms-logs      recent audit rows, newest first
- GET  /admin/outbox        audit outbox statistics
- POST /admin/outbox/sync   replay parked audit rows, then purge exhausted ones
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from relief.core.config import settings
from relief.core.security import require_admin_token
from relief.db.models import SmsProcessingLog
from relief.db.session import get_session
from relief.services.factories import get_gateway, get_outbox
from relief.services.persistence import ReportGateway
from relief.store.outbox import Outbox
from relief.utils.parsers import iso_z

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])


@router.get("/sms-logs")
async def list_sms_logs(
    success: Optional[bool] = Query(default=None, description="Filter by processing outcome"),
    limit: int = Query(default=50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    stmt = select(SmsProcessingLog)
    if success is not None:
        stmt = stmt.where(SmsProcessingLog.processing_success.is_(success))
    rows = (
        await session.execute(stmt.order_by(SmsProcessingLog.processed_at.desc(), SmsProcessingLog.id.desc()).limit(limit))
    ).scalars().all()

    items = [
        {
            "id": r.id,
            "sender_phone": r.sender_phone,
            "raw_message": r.raw_message,
            "detected_category": r.detected_category,
            "processing_success": r.processing_success,
            "created_record_id": r.created_record_id,
            "error_message": r.error_message,
            "sms_id": r.sms_id,
            "device_id": r.device_id,
            "processed_at": iso_z(r.processed_at),
        }
        for r in rows
    ]
    return {"items": items, "count": len(items)}


@router.get("/outbox")
async def outbox_stats(outbox: Outbox = Depends(get_outbox)):
    return outbox.stats()


@router.post("/outbox/sync")
async def sync_outbox(
    gateway: ReportGateway = Depends(get_gateway),
    outbox: Outbox = Depends(get_outbox),
):
    result = await gateway.replay_audit_outbox()
    purged = outbox.purge(timedelta(days=settings.OUTBOX_RETENTION_DAYS))
    return {**result.as_dict(), "purged": purged}
