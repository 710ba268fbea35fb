"""Unit tests for the Gemini-backed SMS classifier."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime

import pytest

from relief.core.config import settings
from relief.services import gemini_service
from relief.services.classifier import GeminiClassifier, build_prompt, parse_classification
from relief.services.gemini_service import GeminiError, generate_text

NOW = datetime(2025, 10, 5, 13, 0, 0)


def _classify(generate, message="Flood near Galle"):
    return asyncio.run(GeminiClassifier(generate=generate).classify(message, "+94771234567", NOW))


def test_prompt_embeds_message_sender_and_time():
    prompt = build_prompt("Flood near Galle", "+94771234567", NOW)

    assert '"Flood near Galle"' in prompt
    assert "SENDER PHONE: +94771234567" in prompt
    assert "2025-10-05T13:00:00Z" in prompt
    for category in ("disaster", "missing_person", "animal_rescue"):
        assert category in prompt


def test_parse_fenced_json():
    text = '```json\n{"category": "Disaster", "confidence": 0.9, "data": {"severity": "high"}}\n```'

    report = parse_classification(text, "Flood near Galle")

    assert report.category == "disaster"
    assert report.confidence == 0.9
    assert report.data == {"severity": "high"}
    assert report.raw_message == "Flood near Galle"


def test_confidence_is_clamped():
    assert parse_classification('{"category": "disaster", "confidence": 7}', "m").confidence == 1.0
    assert parse_classification('{"category": "disaster", "confidence": "high"}', "m").confidence == 0.0


def test_unusable_output_is_none():
    assert parse_classification("I think this is a flood.", "m") is None
    assert parse_classification('["disaster"]', "m") is None
    assert parse_classification('{"category": "disaster", "data": "flood"}', "m") is None


def test_classifier_success():
    async def _generate(prompt):
        return '{"category": "animal_rescue", "confidence": 0.8, "data": {"animal_type": "dog"}}'

    report = _classify(_generate)

    assert report.category == "animal_rescue"
    assert report.raw_message == "Flood near Galle"


def test_classifier_failures_are_none():
    async def _boom(prompt):
        raise GeminiError("503 Service Unavailable")

    async def _empty(prompt):
        return ""

    assert _classify(_boom) is None
    assert _classify(_empty) is None


def test_generate_text_without_key_returns_empty(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    assert asyncio.run(generate_text("classify this")) == ""


def test_generate_text_timeout_raises_gemini_error(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(gemini_service, "_generate_sync", lambda prompt: time.sleep(0.5) or "late")

    with pytest.raises(GeminiError):
        asyncio.run(generate_text("classify this", timeout_s=0.05))


def test_generation_config_and_safety():
    cfg = gemini_service.generation_config()
    assert cfg["temperature"] == settings.GEMINI_TEMPERATURE
    assert cfg["max_output_tokens"] == settings.GEMINI_MAX_OUTPUT_TOKENS
    assert {s["threshold"] for s in gemini_service.safety_settings()} == {"BLOCK_NONE"}
