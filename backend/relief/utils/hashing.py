# relief/utils/hashing.py
"""Hashing helpers for delivery dedup."""

from __future__ import annotations

import hashlib


def hash_text(value: str) -> str:
    """Return the SHA-256 hex digest of the provided text."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def message_key(sender: str, message: str) -> str:
    """Content key for one SMS: same sender and same (trimmed) text hash equal."""
    return hash_text(f"{(sender or '').strip()}\n{(message or '').strip()}")
