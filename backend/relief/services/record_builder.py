# relief/services/record_builder.py
"""
ClassifiedReport -> table row.

Trust boundary:
- Only fields declared on the category's data model are read (extra keys from
  the model are dropped during decoding).
- `contact_number` is always the gateway-reported sender, never a number the
  model pulled out of the message text.
- The original SMS text is embedded in a free-text column so it survives any
  misclassification.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from relief.db.models import REPORT_MODELS
from relief.schemas.reports import (
    CATEGORY_DATA_MODELS,
    UNKNOWN_LOCATION,
    AnimalRescueData,
    ClassifiedReport,
    DisasterData,
    Location,
    MissingPersonData,
)
from relief.services.geocoder import Coordinates
from relief.services.lifecycle import open_label
from relief.utils.parsers import iso_z, utcnow

SMS_PREFIX = "[SMS Report] "


class UnknownCategoryError(ValueError):
    """The classifier picked a category outside the three report kinds."""


@dataclass(frozen=True)
class BuiltRecord:
    category: str
    table: str
    values: Dict[str, Any]
    data: Dict[str, Any]


def decode_data(report: ClassifiedReport):
    """
    Decode `report.data` into the category's strict model.

    Raises:
        UnknownCategoryError: category is not one of the three report kinds.
        pydantic.ValidationError: data cannot be decoded at all.
    """
    model = CATEGORY_DATA_MODELS.get(report.category)
    if model is None:
        raise UnknownCategoryError(report.category)
    return model.model_validate(report.data)


def build_location(address: Optional[str], coords: Optional[Coordinates]) -> Dict[str, Any]:
    location = Location(
        lat=coords.lat if coords else None,
        lng=coords.lng if coords else None,
        address=address or UNKNOWN_LOCATION,
    )
    return location.model_dump()


def _provenance(category: str, reporter_name: str, sender: str) -> Dict[str, Any]:
    return {
        "reporter_name": reporter_name,
        "contact_number": sender,
        "status": open_label(category),
        "reported_via_sms": True,
        "sms_sender_phone": sender,
    }


def _disaster_values(data: DisasterData, sender: str, raw: str, coords, now: datetime) -> Dict[str, Any]:
    return {
        "disaster_type": data.disaster_type,
        "severity": data.severity,
        "description": f"{SMS_PREFIX}{raw}",
        "people_affected": data.people_affected,
        "casualties": data.casualties,
        "needs": data.needs,
        "location": build_location(data.location_address, coords),
        "occurred_date": data.occurred_date,
        "area_size": data.area_size,
        **_provenance("disaster", data.reporter_name, sender),
    }


def _missing_person_values(data: MissingPersonData, sender: str, raw: str, coords, now: datetime) -> Dict[str, Any]:
    return {
        "name": data.name,
        "age": data.age,
        "gender": data.gender,
        "description": data.description,
        "last_seen_location": build_location(data.location_address, coords),
        "last_seen_date": data.last_seen_date or iso_z(now),
        "additional_info": f"{SMS_PREFIX}{raw}",
        **_provenance("missing_person", data.reporter_name, sender),
    }


def _animal_rescue_values(data: AnimalRescueData, sender: str, raw: str, coords, now: datetime) -> Dict[str, Any]:
    return {
        "animal_type": data.animal_type,
        "breed": data.breed,
        "description": f"{SMS_PREFIX}{raw}",
        "condition": data.condition,
        "is_dangerous": data.is_dangerous,
        "location": build_location(data.location_address, coords),
        **_provenance("animal_rescue", data.reporter_name, sender),
    }


_MAPPERS: Dict[str, Callable[..., Dict[str, Any]]] = {
    "disaster": _disaster_values,
    "missing_person": _missing_person_values,
    "animal_rescue": _animal_rescue_values,
}


def build_record(
    report: ClassifiedReport,
    sender: str,
    coords: Optional[Coordinates] = None,
    *,
    data=None,
    now: Optional[datetime] = None,
) -> BuiltRecord:
    """
    Build the insertable row for `report`; see module docstring for guarantees.

    `data` may be passed when the caller already decoded it (the pipeline does,
    to read the address before geocoding).
    """
    if data is None:
        data = decode_data(report)
    now = now or utcnow()
    values = _MAPPERS[report.category](data, sender, report.raw_message, coords, now)
    return BuiltRecord(
        category=report.category,
        table=REPORT_MODELS[report.category].__tablename__,
        values=values,
        data=data.model_dump(),
    )
