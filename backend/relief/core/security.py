# relief/core/security.py
"""
Request authentication helpers.

- Webhook signatures: the SMS gateway signs the raw request body with
  HMAC-SHA256 and sends the hex digest in `x-signature`.
- Admin token: triage/admin routes require `X-Admin-Token` to match
  `ADMIN_API_TOKEN`.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from relief.core.config import settings

logger = logging.getLogger(__name__)


def compute_signature(body: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of `body` keyed with `secret`."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Check a webhook signature against the raw request body.

    Returns True when no secret is configured (verification is opt-in per
    deployment). With a secret, a missing or mismatching signature is rejected.
    """
    if not secret:
        return True
    if not signature:
        return False

    expected = compute_signature(body, secret)
    # Gateways differ in hex casing; compare normalized, in constant time.
    # Header values can carry non-ASCII bytes, so compare as bytes.
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))


def require_admin_token(x_admin_token: Optional[str] = Header(None)) -> str:
    """
    FastAPI dependency guarding responder/admin routes.

    Raises:
        HTTPException: 403 when admin routes are disabled, 401 when the header
        is missing or wrong.
    """
    if not settings.ADMIN_API_TOKEN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin API disabled")
    if not x_admin_token or not hmac.compare_digest(
        x_admin_token.encode("utf-8"), settings.ADMIN_API_TOKEN.encode("utf-8")
    ):
        logger.warning("Rejected admin request with missing/invalid token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")
    return x_admin_token
