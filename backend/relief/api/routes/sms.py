# relief/api/routes/sms.py
"""
POST /sms-report

Webhook for the Android SMS gateway.

Responsibilities:
- Verify the HMAC signature over the raw body (when a secret is configured)
- Parse the gateway payload
- Run the ingestion pipeline and return its reply

Status codes:
- 401 for a bad/missing signature (nothing else runs)
- 405 for non-POST methods (FastAPI routing)
- 200 for everything else, including failures and oversized bodies; a
  non-200 would make the gateway redeliver and duplicate-process the same SMS
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import ORJSONResponse

from relief.core.config import settings
from relief.core.security import verify_signature
from relief.schemas.sms import InboundSmsEvent, WebhookResponse
from relief.services.factories import get_pipeline
from relief.services.pipeline import REPLY_INTERNAL_ERROR, REPLY_UNPARSEABLE, SmsIntakePipeline

logger = logging.getLogger(__name__)

router = APIRouter()

WEBHOOK_PATH = "/sms-report"


@router.post(WEBHOOK_PATH)
async def sms_report(
    request: Request,
    x_signature: Optional[str] = Header(default=None),
    pipeline: SmsIntakePipeline = Depends(get_pipeline),
):
    """Process one gateway delivery; see module docstring for status codes."""
    raw_body = await request.body()

    if not verify_signature(raw_body, x_signature, settings.SMS_WEBHOOK_SECRET):
        logger.error("Invalid webhook signature")
        return ORJSONResponse(status_code=401, content={"error": "Invalid signature"})

    if len(raw_body) > settings.MAX_BODY_BYTES:
        logger.warning("Webhook body of %d bytes exceeds %d KB; not processed", len(raw_body), settings.MAX_BODY_KB)
        body = WebhookResponse(success=False, error="Message too large", reply=REPLY_UNPARSEABLE).to_body()
        return ORJSONResponse(status_code=200, content=body)

    try:
        event = InboundSmsEvent.model_validate_json(raw_body)
        result = await pipeline.handle(event)
    except Exception as e:
        logger.exception("SMS processing error")
        body = WebhookResponse(
            success=False,
            error="Internal server error",
            reply=REPLY_INTERNAL_ERROR,
        ).to_body()
        if settings.ENV == "dev":
            body["details"] = {"type": e.__class__.__name__, "message": str(e)}
        return ORJSONResponse(status_code=200, content=body)

    return ORJSONResponse(status_code=200, content=result.to_body())
