# relief/utils/parsers.py
"""
Parsing helpers for model output and loosely-typed report fields.

The classifier's raw text is untrusted: it may be wrapped in markdown code
fences, and individual fields may carry the wrong type. These helpers turn
such values into something the strict report schemas accept.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import orjson
from dateutil import parser as dtparser

TRUE_STRINGS = {"true", "yes", "y", "1"}
FALSE_STRINGS = {"false", "no", "n", "0", ""}


def iso_z(dt: datetime) -> str:
    """Convert a naive UTC datetime to ISO8601 with trailing Z."""
    return dt.replace(microsecond=0).isoformat() + "Z"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_now_iso() -> str:
    return iso_z(utcnow())


def strip_code_fences(text: str) -> str:
    """
    Remove a surrounding ```json ... ``` (or bare ```) wrapper if present.

    Only the outer fence is removed; text without fences is returned trimmed.
    """
    value = (text or "").strip()
    if value.startswith("```json"):
        value = value[len("```json"):]
    elif value.startswith("```"):
        value = value[3:]
    if value.endswith("```"):
        value = value[:-3]
    return value.strip()


def loads_model_json(text: str) -> Any:
    """
    Parse model output as JSON after stripping code fences.

    Raises:
        ValueError: when the text is empty or not valid JSON.
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ValueError("Model output is empty")
    try:
        return orjson.loads(cleaned)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Model output is not valid JSON: {e}") from e


def normalize_iso_datetime(value: Any) -> Optional[str]:
    """
    Parse a timestamp-like value and normalize it to ISO8601 UTC with Z.

    Returns None for missing or unparseable input rather than raising; tz-naive
    values are treated as UTC.
    """
    if value is None or not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = dtparser.isoparse(value.strip())
    except (ValueError, OverflowError):
        try:
            dt = dtparser.parse(value.strip())
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        except (ValueError, OverflowError):
            # e.g. year 1 with a positive offset falls before datetime.min
            return None
    return iso_z(dt)


def coerce_choice(value: Any, allowed: Iterable[str], default: Optional[str]) -> Optional[str]:
    """Return `value` normalized (trimmed, lower-case) if it is allowed, else `default`."""
    if value is None:
        return default
    candidate = str(value).strip().lower()
    return candidate if candidate in set(allowed) else default


def coerce_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        v = value.strip().lower()
        if v in TRUE_STRINGS:
            return True
        if v in FALSE_STRINGS:
            return False
    return default


def coerce_text(value: Any, default: Optional[str] = None, max_len: int = 2000) -> Optional[str]:
    """Trimmed string or `default` for blanks/non-strings; long values are cut at `max_len`."""
    if value is None:
        return default
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        return default
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a"}:
        return default
    return text[:max_len]
