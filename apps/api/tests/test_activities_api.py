from __future__ import annotations

from fastapi.testclient import TestClient

from babysync.clock import day_bounds_ms
from babysync.main import app

client = TestClient(app)


def create_family(name: str = "Nursery") -> dict:
    response = client.post("/api/family", json={"babyName": name})
    assert response.status_code == 201
    return response.json()


def add_activity(family_id: str, **payload) -> dict:
    body = {"type": "feeding", "data": {"feedType": "bottle", "amount": 4, "unit": "oz"}}
    body.update(payload)
    response = client.post(f"/api/families/{family_id}/activities", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_join_family_by_code() -> None:
    family = create_family("  Ada  ")

    assert family["baby_name"] == "Ada"
    assert len(family["code"]) == 6
    assert family["code"] == family["code"].upper()

    joined = client.post("/api/family/join", json={"code": f" {family['code'].lower()} "})
    assert joined.status_code == 200
    assert joined.json()["id"] == family["id"]


def test_blank_baby_name_falls_back_to_default() -> None:
    assert create_family("   ")["baby_name"] == "Baby"


def test_join_with_unknown_code_is_404() -> None:
    response = client.post("/api/family/join", json={"code": "ZZZZZZ"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Family not found"


def test_list_is_newest_first_and_respects_limit() -> None:
    family = create_family()
    for started_at in (1_000, 3_000, 2_000):
        add_activity(family["id"], startedAt=started_at)

    listed = client.get(f"/api/families/{family['id']}/activities").json()
    limited = client.get(f"/api/families/{family['id']}/activities", params={"limit": 2}).json()

    assert [item["started_at"] for item in listed] == [3_000, 2_000, 1_000]
    assert len(limited) == 2


def test_today_filter_uses_local_day() -> None:
    family = create_family()
    start, _ = day_bounds_ms()
    add_activity(family["id"], startedAt=start - 1)
    today = add_activity(family["id"], startedAt=start + 60_000)

    listed = client.get(f"/api/families/{family['id']}/activities", params={"today": "true"}).json()

    assert [item["id"] for item in listed] == [today["id"]]


def test_create_defaults_start_and_records_creator() -> None:
    family = create_family()
    activity = add_activity(family["id"], createdBy="device-a")

    assert activity["family_id"] == family["id"]
    assert activity["started_at"] > 0
    assert activity["ended_at"] is None
    assert activity["created_by"] == "device-a"


def test_activity_routes_404_for_unknown_family() -> None:
    assert client.get("/api/families/missing/activities").status_code == 404
    response = client.post("/api/families/missing/activities", json={"type": "diaper", "data": {}})
    assert response.status_code == 404


def test_invalid_payload_and_reversed_bounds_are_400() -> None:
    family = create_family()
    url = f"/api/families/{family['id']}/activities"

    bad_data = client.post(url, json={"type": "diaper", "data": {"diaperType": "blue"}})
    reversed_bounds = client.post(url, json={"type": "sleep", "data": {}, "startedAt": 5_000, "endedAt": 4_000})

    assert bad_data.status_code == 400
    assert "diaperType" in bad_data.json()["detail"]
    assert reversed_bounds.status_code in (400, 422)


def test_update_changes_only_supplied_fields() -> None:
    family = create_family()
    sleep = add_activity(family["id"], type="sleep", data={"location": "crib"}, startedAt=1_000)

    closed = client.put(f"/api/activities/{sleep['id']}", json={"endedAt": 3_601_000})
    assert closed.status_code == 200
    assert closed.json()["ended_at"] == 3_601_000
    assert closed.json()["data"] == {"location": "crib"}

    edited = client.put(f"/api/activities/{sleep['id']}", json={"data": {"quality": 5}})
    assert edited.json()["data"] == {"quality": 5}
    assert edited.json()["ended_at"] == 3_601_000

    reopened = client.put(f"/api/activities/{sleep['id']}", json={"endedAt": None})
    assert reopened.json()["ended_at"] is None


def test_update_validates_against_existing_type() -> None:
    family = create_family()
    sleep = add_activity(family["id"], type="sleep", data={}, startedAt=10_000)

    bad_quality = client.put(f"/api/activities/{sleep['id']}", json={"data": {"quality": 9}})
    too_early = client.put(f"/api/activities/{sleep['id']}", json={"endedAt": 5_000})

    assert bad_quality.status_code == 400
    assert too_early.status_code == 400


def test_update_and_delete_unknown_activity_are_404() -> None:
    assert client.put("/api/activities/nope", json={"endedAt": 1}).status_code == 404
    assert client.delete("/api/activities/nope").status_code == 404


def test_delete_removes_activity() -> None:
    family = create_family()
    activity = add_activity(family["id"])

    response = client.delete(f"/api/activities/{activity['id']}", params={"deviceId": "device-a"})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get(f"/api/families/{family['id']}/activities").json() == []


def test_health_reports_live_counts() -> None:
    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["timestamp"] > 0
    assert body["rooms"] == 0
    assert body["connections"] == 0
