# relief/services/lifecycle.py
"""
Report lifecycle: one open/closed state with per-category display labels.

Rows store the label (e.g. "Active", "Rescued") because that is what the
dashboards render; all comparisons go through `state_of()` instead of string
equality against a particular label.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


class ReportState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# category -> (open label, closed label) used when writing
STATUS_LABELS: Dict[str, Tuple[str, str]] = {
    "disaster": ("Active", "Resolved"),
    "missing_person": ("Active", "Resolved"),
    "animal_rescue": ("Pending", "Rescued"),
}

# Closed labels that older rows and other clients also use. Open labels
# ("active", "pending", anything unrecognised) need no list.
_CLOSED_ALIASES = {"resolved", "rescued", "closed", "found"}


def label_for(category: str, state: ReportState) -> str:
    """Status string stored for `state` in `category`'s table."""
    open_label, closed_label = STATUS_LABELS[category]
    return open_label if state is ReportState.OPEN else closed_label


def open_label(category: str) -> str:
    return label_for(category, ReportState.OPEN)


def state_of(category: str, label: str | None) -> ReportState:
    """
    Map a stored status label back to its lifecycle state.

    Unknown labels count as open so a report is never hidden from responders
    by an unexpected status string.
    """
    if category not in STATUS_LABELS:
        raise KeyError(f"Unknown report category: {category}")
    value = (label or "").strip().lower()
    if value in _CLOSED_ALIASES:
        return ReportState.CLOSED
    return ReportState.OPEN


def closed_labels() -> Tuple[str, ...]:
    """
    Lower-cased labels that mean closed. Anything else, including NULL, is
    open; SQL filters must compare against the trimmed, lower-cased column.
    """
    return tuple(sorted(_CLOSED_ALIASES))
