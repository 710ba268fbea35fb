# relief/schemas/reports.py
"""
Report schemas: classifier output contracts and triage API shapes.

The three `*Data` models are the allow-list between model output and the
database. Unknown keys are dropped and out-of-vocabulary values fall back to
the category default, so a prompt-injected or drifting model response can only
ever populate the columns listed here.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relief.services.lifecycle import ReportState
from relief.utils.parsers import (
    coerce_bool,
    coerce_choice,
    coerce_text,
    normalize_iso_datetime,
)

CATEGORIES = ("disaster", "missing_person", "animal_rescue")

DEFAULT_REPORTER = "SMS Reporter"
DEFAULT_PERSON_NAME = "Unknown Person"
DEFAULT_AGE = 30
UNKNOWN_LOCATION = "Unknown location"

DISASTER_TYPES = (
    "flood", "landslide", "fire", "earthquake", "cyclone",
    "drought", "tsunami", "building-collapse", "other",
)
SEVERITIES = ("low", "moderate", "high", "critical")
PEOPLE_AFFECTED = ("0", "1-10", "11-50", "51-100", "100+")
CASUALTIES = ("none", "minor", "serious", "fatalities")
NEEDS = ("rescue", "medical", "shelter", "food", "water", "evacuation")
GENDERS = ("male", "female", "other")
ANIMAL_TYPES = ("dog", "cat", "cattle", "goat", "bird", "wildlife", "other")
ANIMAL_CONDITIONS = ("healthy", "injured", "trapped", "sick", "critical")


class Location(BaseModel):
    """Embedded location value; coordinates stay null until geocoded."""
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: str = UNKNOWN_LOCATION


class ClassifiedReport(BaseModel):
    """
    The model's interpretation of one SMS, before category decoding.

    `data` is kept as a raw mapping here; the record builder decodes it into the
    category's strict model.
    """
    category: str
    confidence: float = 0.0
    data: Dict[str, Any] = Field(default_factory=dict)
    raw_message: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, v: Any) -> str:
        return str(v or "").strip().lower()

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return min(1.0, max(0.0, value))


class _CategoryData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location_address: Optional[str] = None
    reporter_name: str = DEFAULT_REPORTER

    @field_validator("location_address", mode="before")
    @classmethod
    def _clean_address(cls, v: Any) -> Optional[str]:
        return coerce_text(v, max_len=500)

    @field_validator("reporter_name", mode="before")
    @classmethod
    def _clean_reporter(cls, v: Any) -> str:
        return coerce_text(v, DEFAULT_REPORTER, max_len=128)


class DisasterData(_CategoryData):
    disaster_type: Literal[DISASTER_TYPES] = "other"
    severity: Literal[SEVERITIES] = "moderate"
    people_affected: Optional[Literal[PEOPLE_AFFECTED]] = None
    casualties: Optional[Literal[CASUALTIES]] = None
    needs: Optional[Dict[str, bool]] = None
    occurred_date: Optional[str] = None
    area_size: Optional[str] = None

    @field_validator("disaster_type", mode="before")
    @classmethod
    def _disaster_type(cls, v: Any) -> str:
        return coerce_choice(v, DISASTER_TYPES, "other")

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v: Any) -> str:
        return coerce_choice(v, SEVERITIES, "moderate")

    @field_validator("people_affected", mode="before")
    @classmethod
    def _people_affected(cls, v: Any) -> Optional[str]:
        return coerce_choice(v, PEOPLE_AFFECTED, None)

    @field_validator("casualties", mode="before")
    @classmethod
    def _casualties(cls, v: Any) -> Optional[str]:
        return coerce_choice(v, CASUALTIES, None)

    @field_validator("needs", mode="before")
    @classmethod
    def _needs(cls, v: Any) -> Optional[Dict[str, bool]]:
        if not isinstance(v, dict):
            return None
        return {key: coerce_bool(v.get(key)) for key in NEEDS}

    @field_validator("occurred_date", mode="before")
    @classmethod
    def _occurred_date(cls, v: Any) -> Optional[str]:
        return normalize_iso_datetime(v)

    @field_validator("area_size", mode="before")
    @classmethod
    def _area_size(cls, v: Any) -> Optional[str]:
        return coerce_text(v, max_len=256)


class MissingPersonData(_CategoryData):
    name: str = DEFAULT_PERSON_NAME
    age: int = DEFAULT_AGE
    gender: Literal[GENDERS] = "other"
    description: Optional[str] = None
    last_seen_date: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> str:
        return coerce_text(v, DEFAULT_PERSON_NAME, max_len=128)

    @field_validator("age", mode="before")
    @classmethod
    def _age(cls, v: Any) -> int:
        if isinstance(v, bool):
            return DEFAULT_AGE
        try:
            age = int(float(v))
        except (TypeError, ValueError, OverflowError):
            return DEFAULT_AGE
        return age if 0 <= age <= 130 else DEFAULT_AGE

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, v: Any) -> str:
        return coerce_choice(v, GENDERS, "other")

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> Optional[str]:
        return coerce_text(v)

    @field_validator("last_seen_date", mode="before")
    @classmethod
    def _last_seen(cls, v: Any) -> Optional[str]:
        return normalize_iso_datetime(v)


class AnimalRescueData(_CategoryData):
    animal_type: Literal[ANIMAL_TYPES] = "other"
    breed: Optional[str] = None
    condition: Literal[ANIMAL_CONDITIONS] = "trapped"
    is_dangerous: bool = False

    @field_validator("animal_type", mode="before")
    @classmethod
    def _animal_type(cls, v: Any) -> str:
        return coerce_choice(v, ANIMAL_TYPES, "other")

    @field_validator("breed", mode="before")
    @classmethod
    def _breed(cls, v: Any) -> Optional[str]:
        return coerce_text(v, max_len=128)

    @field_validator("condition", mode="before")
    @classmethod
    def _condition(cls, v: Any) -> str:
        return coerce_choice(v, ANIMAL_CONDITIONS, "trapped")

    @field_validator("is_dangerous", mode="before")
    @classmethod
    def _is_dangerous(cls, v: Any) -> bool:
        return coerce_bool(v)


CATEGORY_DATA_MODELS: Dict[str, type[_CategoryData]] = {
    "disaster": DisasterData,
    "missing_person": MissingPersonData,
    "animal_rescue": AnimalRescueData,
}


# -----------------------
# Triage API
# -----------------------
class ReportListResponse(BaseModel):
    """
    Response for browsing one report table (newest first).

    Example:
    {"table": "disasters", "items": [...], "total": 12, "filters_applied": {"status": "open"}}
    """
    table: str
    items: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Total matching rows before pagination")
    filters_applied: Dict[str, str] = Field(default_factory=dict)


class StatusUpdate(BaseModel):
    """Responder action: close (resolve/rescue) or reopen a report."""
    state: ReportState
    resolved_by: Optional[str] = Field(default=None, max_length=128)
    notes: Optional[str] = Field(default=None, max_length=4000)
