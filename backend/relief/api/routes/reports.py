# relief/api/routes/reports.py
"""
GET   /reports/{table}
GET   /reports/{table}/{report_id}
PATCH /reports/{table}/{report_id}/status

Browse and triage citizen reports (disasters, missing_persons, animal_rescues).

Listing results are cached per query for REPORT_CACHE_TTL_SECONDS; inserts
from the SMS pipeline and status changes invalidate the table's entries.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from relief.core.security import require_admin_token
from relief.db.session import get_session
from relief.schemas.reports import ReportListResponse, StatusUpdate
from relief.services import reports_service
from relief.services.factories import get_report_cache
from relief.services.lifecycle import ReportState
from relief.store.cache import ExpiringCache

router = APIRouter(prefix="/reports", tags=["reports"])


def _check_table(table: str) -> str:
    try:
        reports_service.category_for_table(table)
    except reports_service.UnknownTableError:
        raise HTTPException(status_code=404, detail=f"Unknown report table: {table}")
    return table


@router.get("/{table}", response_model=ReportListResponse)
async def list_reports(
    table: str,
    status: Optional[ReportState] = Query(default=None, description="open | closed"),
    limit: int = Query(default=20, ge=1, le=200, description="Max results to return"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    session: AsyncSession = Depends(get_session),
    cache: Optional[ExpiringCache] = Depends(get_report_cache),
):
    """
    Newest reports first.

    Example:
      /reports/disasters?status=open&limit=20
    """
    _check_table(table)
    cache_key = f"{table}:{status.value if status else 'all'}:{limit}:{offset}"

    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

    result = await reports_service.list_reports(session, table, state=status, limit=limit, offset=offset)

    if cache is not None:
        cache.set(cache_key, result)
    return result


@router.get("/{table}/{report_id}")
async def get_report(table: str, report_id: str, session: AsyncSession = Depends(get_session)):
    _check_table(table)
    record = await reports_service.get_report(session, table, report_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return record


@router.patch("/{table}/{report_id}/status")
async def update_report_status(
    table: str,
    report_id: str,
    payload: StatusUpdate,
    session: AsyncSession = Depends(get_session),
    cache: Optional[ExpiringCache] = Depends(get_report_cache),
    _token: str = Depends(require_admin_token),
):
    """Mark a report resolved/rescued (state=closed) or reopen it (state=open)."""
    _check_table(table)
    try:
        record = await reports_service.update_status(session, table, report_id, payload)
    except reports_service.InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail="Report not found")

    if cache is not None:
        cache.invalidate_matching(lambda k: k.startswith(f"{table}:"))
    return record
