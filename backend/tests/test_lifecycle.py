"""Unit tests for the shared open/closed report lifecycle."""

from __future__ import annotations

import pytest

from relief.services.lifecycle import ReportState, closed_labels, label_for, open_label, state_of


@pytest.mark.parametrize(
    "category,open_,closed",
    [
        ("disaster", "Active", "Resolved"),
        ("missing_person", "Active", "Resolved"),
        ("animal_rescue", "Pending", "Rescued"),
    ],
)
def test_labels_round_trip_through_state(category, open_, closed):
    assert open_label(category) == open_
    assert label_for(category, ReportState.CLOSED) == closed
    assert state_of(category, open_) is ReportState.OPEN
    assert state_of(category, closed) is ReportState.CLOSED


def test_legacy_labels():
    assert state_of("animal_rescue", "Active") is ReportState.OPEN
    assert state_of("disaster", "Closed") is ReportState.CLOSED
    assert state_of("missing_person", "found") is ReportState.CLOSED
    assert state_of("disaster", None) is ReportState.OPEN
    assert state_of("disaster", "Investigating") is ReportState.OPEN


def test_closed_labels_agree_with_state_of():
    labels = closed_labels()
    assert set(labels) == {"resolved", "rescued", "closed", "found"}
    for category in ("disaster", "missing_person", "animal_rescue"):
        assert all(state_of(category, label.upper()) is ReportState.CLOSED for label in labels)
        assert label_for(category, ReportState.CLOSED).lower() in labels
        assert open_label(category).lower() not in labels


def test_unknown_category():
    with pytest.raises(KeyError):
        state_of("camp", "Active")
