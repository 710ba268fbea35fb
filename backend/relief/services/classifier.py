# relief/services/classifier.py
"""
SMS report classifier.

Flow:
1) Build one prompt describing the three report categories and their JSON schemas
2) Call the language model once (see gemini_service)
3) Strip markdown fences, parse JSON, validate the envelope into ClassifiedReport

Every failure (model error, empty output, bad JSON, wrong shape) returns None;
the pipeline turns that into a logged "please resend with more detail" reply.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from pydantic import ValidationError

from relief.schemas.reports import ClassifiedReport
from relief.services.gemini_service import GeminiError, generate_text
from relief.utils.parsers import iso_z, loads_model_json

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str], Awaitable[str]]


class Classifier(Protocol):
    async def classify(self, message: str, sender: str, now: datetime) -> Optional[ClassifiedReport]: ...


def build_prompt(sms_text: str, sender_phone: str, now: datetime) -> str:
    """Prompt restricted to the fields the report tables actually store."""
    return f"""You are an AI assistant for a disaster management system. Analyze the following SMS message and extract structured information.

SMS MESSAGE:
"{sms_text}"

SENDER PHONE: {sender_phone}
CURRENT DATE/TIME: {iso_z(now)}

TASK:
1. Determine the report category: "disaster", "missing_person", or "animal_rescue"
2. Extract ONLY the fields specified below (these match our database schema)
3. Return a valid JSON object

CATEGORY DEFINITIONS:
- disaster: Reports about floods, fires, earthquakes, landslides, cyclones, building collapse, etc.
- missing_person: Reports about people who are lost, missing, or cannot be found
- animal_rescue: Reports about animals that need rescue (stranded, injured, trapped)

REQUIRED JSON STRUCTURE (only these exact fields):

For DISASTER reports:
{{
  "category": "disaster",
  "confidence": 0.0-1.0,
  "data": {{
    "disaster_type": "flood|landslide|fire|earthquake|cyclone|drought|tsunami|building-collapse|other",
    "severity": "low|moderate|high|critical",
    "people_affected": "0|1-10|11-50|51-100|100+" or null,
    "casualties": "none|minor|serious|fatalities" or null,
    "needs": {{"rescue": bool, "medical": bool, "shelter": bool, "food": bool, "water": bool, "evacuation": bool}} or null,
    "location_address": "extracted location text",
    "occurred_date": "ISO datetime or null",
    "area_size": "description of area size" or null,
    "reporter_name": "name if mentioned, else 'SMS Reporter'"
  }}
}}

For MISSING_PERSON reports:
{{
  "category": "missing_person",
  "confidence": 0.0-1.0,
  "data": {{
    "name": "person's name or 'Unknown Person'",
    "age": number (estimate if not given, use 30),
    "gender": "male|female|other",
    "description": "physical description, clothing, etc." or null,
    "location_address": "last seen location",
    "last_seen_date": "ISO datetime (use current time if not specified)",
    "reporter_name": "name if mentioned, else 'SMS Reporter'"
  }}
}}

For ANIMAL_RESCUE reports:
{{
  "category": "animal_rescue",
  "confidence": 0.0-1.0,
  "data": {{
    "animal_type": "dog|cat|cattle|goat|bird|wildlife|other",
    "breed": "breed or size description" or null,
    "condition": "healthy|injured|trapped|sick|critical",
    "is_dangerous": boolean,
    "location_address": "location description",
    "reporter_name": "name if mentioned, else 'SMS Reporter'"
  }}
}}

RULES:
1. Return ONLY valid JSON, no additional text
2. Use ONLY the fields shown above - no extra fields
3. If category is unclear, choose the most likely based on keywords
4. Set confidence based on how clear the message is (0.5-1.0)
5. Extract location as descriptive text in location_address field
6. If information is missing, use null or reasonable defaults
7. For severity, infer from urgency words (emergency, urgent, critical = high/critical)

RESPOND WITH JSON ONLY:"""


def parse_classification(text: str, raw_message: str) -> Optional[ClassifiedReport]:
    """Turn model text into a ClassifiedReport, or None if it is unusable."""
    try:
        payload = loads_model_json(text)
    except ValueError as e:
        logger.error("Classifier output rejected: %s", e)
        return None

    if not isinstance(payload, dict):
        logger.error("Classifier output is %s, expected an object", type(payload).__name__)
        return None

    try:
        return ClassifiedReport.model_validate({**payload, "raw_message": raw_message})
    except ValidationError as e:
        logger.error("Classifier output has wrong shape: %s", e.errors())
        return None


class GeminiClassifier:
    """Classifier backed by one Gemini generateContent call per message."""

    def __init__(self, generate: GenerateFn = generate_text) -> None:
        self._generate = generate

    async def classify(self, message: str, sender: str, now: datetime) -> Optional[ClassifiedReport]:
        prompt = build_prompt(message, sender, now)
        try:
            text = await self._generate(prompt)
        except GeminiError as e:
            logger.error("Gemini API call failed: %s", e)
            return None

        if not text:
            logger.error("No text content in Gemini response")
            return None

        logger.debug("Gemini text content length: %d", len(text))
        return parse_classification(text, message)
