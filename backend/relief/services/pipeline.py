# relief/services/pipeline.py
"""
SMS report ingestion pipeline.

Per delivery:
    received -> (dedup?) -> classified -> geocoded (optional) -> built
             -> persisted -> logged -> replied

Every stage after signature verification reports failure with a sentinel
rather than raising, so `handle()` always produces a reply for the gateway.
Each delivery is independent: the pipeline keeps no cross-request state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from relief.db.models import REPORT_MODELS
from relief.schemas.sms import InboundSmsEvent, WebhookResponse
from relief.services.classifier import Classifier
from relief.services.geocoder import NominatimGeocoder
from relief.services.persistence import AuditEntry, ReportGateway
from relief.services.record_builder import UnknownCategoryError, build_record, decode_data
from relief.utils.hashing import message_key
from relief.utils.parsers import utcnow

logger = logging.getLogger(__name__)

# -----------------------
# Sender-facing replies (never include internal error detail)
# -----------------------
REPLY_EMPTY = "Your message was empty. Please send a description of the emergency."
REPLY_UNPARSEABLE = (
    "We could not understand your message. Please try again with more details "
    "about the emergency, location, and your name."
)
REPLY_UNKNOWN_CATEGORY = (
    "We could not determine the type of report. Please specify if this is about "
    "a disaster, missing person, or animal rescue."
)
REPLY_SAVE_FAILED = "There was an error saving your report. Please try again later."
REPLY_INTERNAL_ERROR = "An error occurred processing your message. Please try again."


def reference_id(record_id: str) -> str:
    return record_id[:8].upper()


def confirmation_reply(category: str, record_id: str) -> str:
    display = category.replace("_", " ")
    return (
        f"Your {display} report has been received. Reference ID: {reference_id(record_id)}. "
        "Our team will respond soon."
    )


def duplicate_reply(record_id: str) -> str:
    return f"Your report was already received. Reference ID: {reference_id(record_id)}. Our team will respond soon."


class SmsIntakePipeline:
    """Runs one webhook delivery end to end; see module docstring."""

    def __init__(
        self,
        classifier: Classifier,
        geocoder: NominatimGeocoder,
        gateway: ReportGateway,
        *,
        dedup_window_seconds: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.classifier = classifier
        self.geocoder = geocoder
        self.gateway = gateway
        self.dedup_window_seconds = dedup_window_seconds
        self._clock = clock

    async def _log(
        self,
        event: InboundSmsEvent,
        sender: str,
        message: str,
        key: str,
        *,
        category: Optional[str],
        success: bool,
        record_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        await self.gateway.log_processing(
            AuditEntry(
                sender_phone=sender,
                raw_message=message,
                detected_category=category,
                processing_success=success,
                created_record_id=record_id,
                error_message=error,
                sms_id=event.sms_id,
                device_id=event.device_id,
                message_hash=key,
                processed_at=self._clock().replace(microsecond=0).isoformat(),
            )
        )

    async def handle(self, event: InboundSmsEvent) -> WebhookResponse:
        if not event.is_message:
            logger.info("Ignoring webhook event: %s", event.webhook_event)
            return WebhookResponse(success=True, message="Event ignored", event=event.webhook_event)

        sender = event.sender or "unknown"
        message = event.message or ""

        if not message.strip():
            return WebhookResponse(success=False, error="Empty message", reply=REPLY_EMPTY)

        now = self._clock()
        key = message_key(sender, message)
        logger.info(
            "Processing SMS [%s] from %s received at %s: %s",
            event.sms_id, sender, event.received_at, message[:100],
        )

        # -----------------------
        # Dedup (opt-in)
        # -----------------------
        if self.dedup_window_seconds > 0:
            since = now - timedelta(seconds=self.dedup_window_seconds)
            existing = await self.gateway.find_recent_duplicate(key, since)
            if existing is not None:
                record_id, category = existing
                logger.info("Duplicate delivery of SMS [%s]; existing record %s", event.sms_id, record_id)
                await self._log(event, sender, message, key, category=category, success=True, record_id=record_id)
                model = REPORT_MODELS.get(category)
                return WebhookResponse(
                    success=True,
                    duplicate=True,
                    sms_id=event.sms_id,
                    category=category,
                    table=model.__tablename__ if model is not None else None,
                    record_id=record_id,
                    reply=duplicate_reply(record_id),
                )

        # -----------------------
        # Classify
        # -----------------------
        report = await self.classifier.classify(message, sender, now)
        if report is None:
            await self._log(event, sender, message, key, category=None, success=False, error="AI parsing failed")
            return WebhookResponse(success=False, error="Could not parse message", reply=REPLY_UNPARSEABLE)

        try:
            data = decode_data(report)
        except UnknownCategoryError:
            logger.warning("Unknown report category from classifier: %r", report.category)
            await self._log(
                event, sender, message, key,
                category=report.category or None, success=False, error="Unknown category",
            )
            return WebhookResponse(success=False, error="Unknown report category", reply=REPLY_UNKNOWN_CATEGORY)
        except ValidationError as e:
            logger.error("Classifier data could not be decoded: %s", e.errors())
            await self._log(
                event, sender, message, key,
                category=report.category, success=False, error="AI output did not match schema",
            )
            return WebhookResponse(success=False, error="Could not parse message", reply=REPLY_UNPARSEABLE)
        except Exception as e:
            logger.exception("Classifier data could not be decoded: %s", e)
            await self._log(
                event, sender, message, key,
                category=report.category, success=False, error="AI output did not match schema",
            )
            return WebhookResponse(success=False, error="Could not parse message", reply=REPLY_UNPARSEABLE)

        # -----------------------
        # Geocode (failure is non-fatal)
        # -----------------------
        coords = None
        if data.location_address:
            coords = await self.geocoder.geocode(data.location_address)
            if coords:
                logger.info("Geocoded %r to: %s, %s", data.location_address, coords.lat, coords.lng)
            else:
                logger.info("Could not geocode: %r", data.location_address)

        # -----------------------
        # Build + persist
        # -----------------------
        record = build_record(report, sender, coords, data=data, now=now)
        outcome = await self.gateway.insert_report(record)
        if not outcome.ok:
            await self._log(
                event, sender, message, key,
                category=report.category, success=False,
                error=f"Database insert failed: {outcome.error}",
            )
            return WebhookResponse(success=False, error="Failed to save report", reply=REPLY_SAVE_FAILED)

        await self._log(
            event, sender, message, key,
            category=report.category, success=True, record_id=outcome.record_id,
        )
        logger.info("Successfully created %s report: %s", report.category, outcome.record_id)

        extracted = dict(record.data)
        if coords:
            extracted["geocoded_lat"] = coords.lat
            extracted["geocoded_lng"] = coords.lng

        return WebhookResponse(
            success=True,
            sms_id=event.sms_id,
            category=report.category,
            confidence=report.confidence,
            record_id=outcome.record_id,
            table=record.table,
            reply=confirmation_reply(report.category, outcome.record_id),
            extracted_data=extracted,
        )
