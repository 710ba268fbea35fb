# relief/core/logging.py
"""
Application-wide logging configuration.

Purpose:
- Centralize logging setup
- Provide consistent log output for the webhook and triage API
- Keep third-party HTTP client logs quiet (the Gemini key travels in query params)
"""

from __future__ import annotations

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the application.

    Args:
        level: Logging level as a string (e.g. "INFO", "DEBUG", "WARNING").

    Behavior:
    - Sets a single stream handler to stdout (container-friendly)
    - Applies a consistent, readable log format
    - Safe to call once during application startup
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Clear any existing handlers to avoid duplicate logs
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
