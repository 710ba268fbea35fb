# relief/schemas/sms.py
"""
Schemas for POST /sms-report.

The inbound payload follows the Android SMS Gateway webhook format (camelCase
keys); the response is what the gateway relays back to the sender as `reply`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
STATUS_UPDATE = "STATUS_UPDATE"


class InboundSmsEvent(BaseModel):
    """
    One webhook delivery from the SMS gateway.

    Example:
    {
      "smsId": "a1b2", "sender": "+94771234567", "message": "Flood near Galle",
      "receivedAt": "2025-10-05T13:00:35.208Z", "deviceId": "dev-1",
      "webhookSubscriptionId": "sub-1", "webhookEvent": "MESSAGE_RECEIVED"
    }
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sms_id: Optional[str] = Field(default=None, alias="smsId", description="Gateway-assigned id (not globally unique)")
    sender: Optional[str] = Field(default=None, description="Sender phone number")
    message: Optional[str] = Field(default=None, description="Raw SMS text (may be empty)")
    received_at: Optional[str] = Field(default=None, alias="receivedAt", description="ISO8601 receive timestamp")
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    webhook_subscription_id: Optional[str] = Field(default=None, alias="webhookSubscriptionId")
    webhook_event: Optional[str] = Field(default=None, alias="webhookEvent", description="MESSAGE_RECEIVED | STATUS_UPDATE")

    @property
    def is_message(self) -> bool:
        return self.webhook_event == MESSAGE_RECEIVED


class WebhookResponse(BaseModel):
    """
    Body returned to the gateway; always HTTP 200 once past signature checks.

    `reply` is the only field relayed to the SMS sender and never carries
    internal error detail.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    reply: Optional[str] = None
    message: Optional[str] = None
    event: Optional[str] = None
    sms_id: Optional[str] = Field(default=None, alias="smsId")
    category: Optional[str] = None
    confidence: Optional[float] = None
    record_id: Optional[str] = None
    table: Optional[str] = None
    duplicate: Optional[bool] = None
    extracted_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        """Wire form: camelCase `smsId`, unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)
