"""API-level tests for browsing and triaging reports."""

from __future__ import annotations

from datetime import datetime, timedelta

from fakes import FLOOD_SMS, add_rows, fetch_all, post_sms, sms_payload
from relief.db.models import AnimalRescue, Disaster

BASE_TIME = datetime(2025, 10, 5, 13, 0, 0)


def _disaster(i: int, *, status: str = "Active", location=None) -> Disaster:
    return Disaster(
        id=f"00000000-0000-0000-0000-00000000000{i}",
        created_at=BASE_TIME + timedelta(minutes=i),
        status=status,
        reporter_name="SMS Reporter",
        contact_number="+94770000000",
        disaster_type="flood",
        severity="moderate",
        description=f"[SMS Report] report {i}",
        location=location or {"lat": None, "lng": None, "address": "Unknown location"},
        reported_via_sms=True,
    )


def _animal(status: str) -> AnimalRescue:
    return AnimalRescue(
        status=status,
        reporter_name="SMS Reporter",
        contact_number="+94770000000",
        animal_type="dog",
        description="[SMS Report] dog stuck",
        condition="trapped",
        location={"lat": None, "lng": None, "address": "Matara"},
    )


def test_listing_is_newest_first_and_includes_unplottable_rows(wired):
    add_rows(wired.db, _disaster(1), _disaster(2, location={"lat": 6.0, "lng": 80.0, "address": "Galle"}), _disaster(3))

    resp = wired.client.get("/reports/disasters")

    assert resp.status_code == 200
    body = resp.json()
    assert body["table"] == "disasters"
    assert body["total"] == 3
    assert [item["id"][-1] for item in body["items"]] == ["3", "2", "1"]
    assert body["items"][0]["location"]["lat"] is None
    assert body["items"][0]["created_at"] == "2025-10-05T13:03:00Z"
    assert body["items"][0]["state"] == "open"


def test_listing_filters_by_lifecycle_state(wired):
    add_rows(wired.db, _disaster(1), _disaster(2, status="Resolved"), _disaster(3, status="Closed"))

    open_body = wired.client.get("/reports/disasters", params={"status": "open"}).json()
    closed_body = wired.client.get("/reports/disasters", params={"status": "closed"}).json()

    assert open_body["total"] == 1
    assert open_body["filters_applied"] == {"status": "open"}
    assert closed_body["total"] == 2
    assert {item["status"] for item in closed_body["items"]} == {"Resolved", "Closed"}


def test_status_filter_agrees_with_reported_state(wired):
    add_rows(
        wired.db,
        _disaster(1, status="active"),
        _disaster(2, status="Investigating"),
        _disaster(3, status="closed"),
        _disaster(4, status=" RESOLVED "),
    )

    everything = wired.client.get("/reports/disasters").json()["items"]
    open_body = wired.client.get("/reports/disasters", params={"status": "open"}).json()
    closed_body = wired.client.get("/reports/disasters", params={"status": "closed"}).json()

    by_state = {"open": set(), "closed": set()}
    for item in everything:
        by_state[item["state"]].add(item["id"])
    assert {item["id"] for item in open_body["items"]} == by_state["open"]
    assert {item["id"] for item in closed_body["items"]} == by_state["closed"]
    assert open_body["total"] == 2
    assert closed_body["total"] == 2


def test_listing_paginates(wired):
    add_rows(wired.db, *[_disaster(i) for i in range(1, 6)])

    body = wired.client.get("/reports/disasters", params={"limit": 2, "offset": 2}).json()

    assert body["total"] == 5
    assert [item["id"][-1] for item in body["items"]] == ["3", "2"]


def test_unknown_table_is_404(wired):
    assert wired.client.get("/reports/camps").status_code == 404
    assert wired.client.get("/reports/camps/abc").status_code == 404


def test_get_single_report(wired):
    add_rows(wired.db, _disaster(1))

    found = wired.client.get("/reports/disasters/00000000-0000-0000-0000-000000000001")
    missing = wired.client.get("/reports/disasters/does-not-exist")

    assert found.status_code == 200
    assert found.json()["description"] == "[SMS Report] report 1"
    assert missing.status_code == 404


def test_new_sms_report_invalidates_cached_listing(wired):
    assert wired.client.get("/reports/disasters").json()["total"] == 0
    assert len(wired.cache) == 1

    post_sms(wired.client, sms_payload(FLOOD_SMS))

    body = wired.client.get("/reports/disasters").json()
    assert body["total"] == 1
    assert FLOOD_SMS in body["items"][0]["description"]


# -----------------------
# Status transitions
# -----------------------
def test_close_and_reopen_disaster(wired, admin_headers):
    add_rows(wired.db, _disaster(1))
    url = "/reports/disasters/00000000-0000-0000-0000-000000000001/status"

    closed = wired.client.patch(
        url, json={"state": "closed", "resolved_by": "Team Galle", "notes": "Families evacuated"}, headers=admin_headers
    )
    assert closed.status_code == 200
    body = closed.json()
    assert body["status"] == "Resolved"
    assert body["state"] == "closed"
    assert body["resolved_by"] == "Team Galle"
    assert body["responder_notes"] == "Families evacuated"
    assert body["resolved_at"].endswith("Z")

    again = wired.client.patch(url, json={"state": "closed"}, headers=admin_headers)
    assert again.status_code == 409

    reopened = wired.client.patch(url, json={"state": "open"}, headers=admin_headers).json()
    assert reopened["status"] == "Active"
    assert reopened["resolved_at"] is None
    assert reopened["resolved_by"] is None


def test_closing_animal_rescue_uses_rescued_label(wired, admin_headers):
    add_rows(wired.db, _animal("Pending"))
    animal_id = fetch_all(wired.db, AnimalRescue)[0].id

    body = wired.client.patch(
        f"/reports/animal_rescues/{animal_id}/status", json={"state": "closed"}, headers=admin_headers
    ).json()

    assert body["status"] == "Rescued"
    assert body["resolved_by"] == "Response Team"


def test_legacy_open_label_is_still_open(wired, admin_headers):
    add_rows(wired.db, _animal("Active"))
    animal_id = fetch_all(wired.db, AnimalRescue)[0].id

    listed = wired.client.get("/reports/animal_rescues", params={"status": "open"}).json()
    assert listed["total"] == 1

    resp = wired.client.patch(f"/reports/animal_rescues/{animal_id}/status", json={"state": "open"}, headers=admin_headers)
    assert resp.status_code == 409


def test_status_change_requires_admin_token(wired, base_settings, monkeypatch):
    add_rows(wired.db, _disaster(1))
    url = "/reports/disasters/00000000-0000-0000-0000-000000000001/status"

    assert wired.client.patch(url, json={"state": "closed"}).status_code == 401
    assert wired.client.patch(url, json={"state": "closed"}, headers={"X-Admin-Token": "nope"}).status_code == 401
    non_ascii = {"X-Admin-Token": b"t\xe9st-admin-token"}
    assert wired.client.patch(url, json={"state": "closed"}, headers=non_ascii).status_code == 401

    monkeypatch.setattr(base_settings, "ADMIN_API_TOKEN", None)
    assert wired.client.patch(url, json={"state": "closed"}, headers={"X-Admin-Token": "nope"}).status_code == 403


def test_status_change_on_missing_report_is_404(wired, admin_headers):
    resp = wired.client.patch("/reports/missing_persons/nope/status", json={"state": "closed"}, headers=admin_headers)
    assert resp.status_code == 404


def test_status_change_invalidates_cached_listing(wired, admin_headers):
    add_rows(wired.db, _disaster(1))
    assert wired.client.get("/reports/disasters", params={"status": "open"}).json()["total"] == 1

    wired.client.patch(
        "/reports/disasters/00000000-0000-0000-0000-000000000001/status",
        json={"state": "closed"},
        headers=admin_headers,
    )

    assert wired.client.get("/reports/disasters", params={"status": "open"}).json()["total"] == 0
