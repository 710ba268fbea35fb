# relief/db/models.py
"""
SQLAlchemy ORM models for the Relief backend.

Tables:
- disasters, missing_persons, animal_rescues: one row per citizen report
- sms_processing_logs: audit trail, one row per processed SMS delivery

Notes:
- Report ids are opaque strings (UUID4) assigned at insert time; callers must
  not assume a format beyond "string".
- Locations are stored as JSON `{lat, lng, address}`; coordinates stay null
  when geocoding failed so rows are listable but not plottable.
- Timestamps are naive UTC datetimes; the API boundary adds the trailing "Z".
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from relief.utils.parsers import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return utcnow().replace(microsecond=0)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


class ReportMixin:
    """
    Columns shared by the three report tables.

    Provenance columns (`reported_via_sms`, `sms_sender_phone`) record where a
    row came from; resolution columns are filled by responders.
    """

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), index=True, default=_utcnow)

    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    reporter_name: Mapped[str] = mapped_column(String(128), nullable=False)
    contact_number: Mapped[str] = mapped_column(String(32), nullable=False)

    reported_via_sms: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sms_sender_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    responder_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Disaster(ReportMixin, Base):
    """A reported disaster incident (flood, fire, landslide, ...)."""

    __tablename__ = "disasters"

    disaster_type: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    severity: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    people_affected: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    casualties: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    needs: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    location: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    occurred_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    area_size: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)


class MissingPerson(ReportMixin, Base):
    """A person reported missing; `last_seen_location` mirrors `location` elsewhere."""

    __tablename__ = "missing_persons"

    name: Mapped[str] = mapped_column(String(128), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_seen_location: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    last_seen_date: Mapped[str] = mapped_column(String(40), nullable=False)
    additional_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class AnimalRescue(ReportMixin, Base):
    """An animal needing rescue."""

    __tablename__ = "animal_rescues"

    animal_type: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    breed: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    condition: Mapped[str] = mapped_column(String(16), nullable=False)
    is_dangerous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    location: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


class SmsProcessingLog(Base):
    """
    Audit record of one SMS processing attempt.

    Written on success and failure alike; `detected_category` is null when the
    classifier could not interpret the message. `message_hash` keys the
    optional duplicate-delivery window.
    """

    __tablename__ = "sms_processing_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_phone: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    raw_message: Mapped[str] = mapped_column(Text, nullable=False)
    message_hash: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    detected_category: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    processing_success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_record_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sms_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    device_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), index=True, default=_utcnow)


# category -> ORM model; the single place mapping report kinds to tables
REPORT_MODELS: dict[str, type[Base]] = {
    "disaster": Disaster,
    "missing_person": MissingPerson,
    "animal_rescue": AnimalRescue,
}

TABLE_TO_CATEGORY: dict[str, str] = {
    model.__tablename__: category for category, model in REPORT_MODELS.items()
}
