# relief/services/reports_service.py
"""
Read and triage operations on the report tables.

Listing is newest-first by `created_at` (arrival order of deliveries is not
preserved anywhere). Rows without coordinates are returned like any other:
"not plottable" never means "not listable".
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from relief.db.models import REPORT_MODELS, TABLE_TO_CATEGORY
from relief.schemas.reports import ReportListResponse, StatusUpdate
from relief.services.lifecycle import ReportState, closed_labels, label_for, state_of
from relief.utils.parsers import iso_z, utcnow

DEFAULT_RESOLVER = "Response Team"


class UnknownTableError(LookupError):
    pass


class InvalidTransitionError(ValueError):
    pass


def category_for_table(table: str) -> str:
    try:
        return TABLE_TO_CATEGORY[table]
    except KeyError:
        raise UnknownTableError(table) from None


def serialize_row(category: str, row: Any) -> Dict[str, Any]:
    """ORM row -> JSON-friendly dict with ISO Z timestamps and the lifecycle state."""
    out: Dict[str, Any] = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = iso_z(value)
        out[column.key] = value
    out["state"] = state_of(category, out.get("status")).value
    return out


def state_clause(column: Any, state: ReportState) -> Any:
    """SQL filter matching exactly the rows `state_of` maps to `state`."""
    normalized = func.lower(func.trim(column))
    if state is ReportState.CLOSED:
        return normalized.in_(closed_labels())
    return or_(column.is_(None), normalized.not_in(closed_labels()))


async def list_reports(
    session: AsyncSession,
    table: str,
    *,
    state: Optional[ReportState] = None,
    limit: int = 20,
    offset: int = 0,
) -> ReportListResponse:
    category = category_for_table(table)
    model = REPORT_MODELS[category]

    stmt = select(model)
    count_stmt = select(func.count()).select_from(model)
    filters_applied: Dict[str, str] = {}

    if state is not None:
        clause = state_clause(model.status, state)
        stmt = stmt.where(clause)
        count_stmt = count_stmt.where(clause)
        filters_applied["status"] = state.value

    total = int((await session.execute(count_stmt)).scalar() or 0)
    rows = (
        await session.execute(
            stmt.order_by(model.created_at.desc()).limit(limit).offset(offset)
        )
    ).scalars().all()

    return ReportListResponse(
        table=table,
        items=[serialize_row(category, r) for r in rows],
        total=total,
        filters_applied=filters_applied,
    )


async def get_report(session: AsyncSession, table: str, report_id: str) -> Optional[Dict[str, Any]]:
    category = category_for_table(table)
    row = await session.get(REPORT_MODELS[category], report_id)
    return serialize_row(category, row) if row is not None else None


async def update_status(
    session: AsyncSession,
    table: str,
    report_id: str,
    update: StatusUpdate,
) -> Optional[Dict[str, Any]]:
    """
    Close or reopen a report.

    Returns the updated row, or None when it does not exist.

    Raises:
        InvalidTransitionError: the report is already in the requested state.
    """
    category = category_for_table(table)
    row = await session.get(REPORT_MODELS[category], report_id)
    if row is None:
        return None

    current = state_of(category, row.status)
    if current is update.state:
        raise InvalidTransitionError(f"Report is already {current.value}")

    row.status = label_for(category, update.state)
    if update.state is ReportState.CLOSED:
        row.resolved_at = utcnow().replace(microsecond=0)
        row.resolved_by = update.resolved_by or DEFAULT_RESOLVER
        row.responder_notes = update.notes
    else:
        row.resolved_at = None
        row.resolved_by = None
        row.responder_notes = update.notes

    await session.commit()
    return serialize_row(category, row)
