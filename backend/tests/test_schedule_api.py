from datetime import datetime

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def knockout(client: TestClient):
    """4-team semifinal knockout on 2 courts, 60-minute matches, 09:00-12:00"""
    tournament = client.post(
        "/api/tournaments",
        json={
            "name": "Knockout",
            "start_date": "2026-05-01",
            "end_date": "2026-05-02",
            "court_count": 2,
            "match_duration_minutes": 60,
            "transition_minutes": 0,
            "day_start_time": "09:00:00",
            "day_end_time": "12:00:00",
        },
    ).json()
    category = client.post(
        f"/api/tournaments/{tournament['id']}/categories",
        json={"name": "Cup", "format": "knockout", "participant_arity": "team", "knockout_depth": "semifinals"},
    ).json()
    for i in range(1, 5):
        client.post(f"/api/categories/{category['id']}/participants", json={"display_name": f"Team {i}"})
    client.post(f"/api/categories/{category['id']}/generate")
    return tournament["id"], category["id"]


def _by_code(matches):
    return {m["match_code"]: m for m in matches}


def test_allocate(client: TestClient, knockout):
    tournament_id, _ = knockout
    response = client.post(f"/api/tournaments/{tournament_id}/schedule/allocate")
    assert response.status_code == 200

    by_code = _by_code(response.json())
    assert by_code["SF1"]["scheduled_time"] == "2026-05-01T09:00:00"
    assert {by_code["SF1"]["court"], by_code["SF2"]["court"]} == {1, 2}
    assert datetime.fromisoformat(by_code["F"]["scheduled_time"]) > datetime.fromisoformat(
        by_code["SF2"]["scheduled_time"]
    )
    assert by_code["F"]["placeholders"] == {"slot1": "Winner SF1", "slot2": "Winner SF2"}


def test_allocate_skips_closed_day(client: TestClient, knockout):
    tournament_id, _ = knockout
    client.put(f"/api/tournaments/{tournament_id}/days/2026-05-01", json={"is_active": False})

    by_code = _by_code(client.post(f"/api/tournaments/{tournament_id}/schedule/allocate").json())
    assert by_code["SF1"]["scheduled_time"] == "2026-05-02T09:00:00"


def test_capacity(client: TestClient, knockout):
    tournament_id, _ = knockout
    response = client.get(f"/api/tournaments/{tournament_id}/schedule/capacity")
    assert response.status_code == 200
    data = response.json()
    assert data["match_count"] == 4
    assert data["fits"] is True
    assert data["required_minutes"] == 120
    assert data["available_minutes"] == 360
    assert data["active_days_count"] == 2


def test_list_matches_ordered_by_time(client: TestClient, knockout):
    tournament_id, category_id = knockout
    client.post(f"/api/tournaments/{tournament_id}/schedule/allocate")

    matches = client.get(f"/api/tournaments/{tournament_id}/matches", params={"category_id": category_id}).json()
    keys = [(m["scheduled_time"], m["court"]) for m in matches]
    assert keys == sorted(keys)


def test_reschedule_after_result(client: TestClient, knockout):
    tournament_id, _ = knockout
    by_code = _by_code(client.post(f"/api/tournaments/{tournament_id}/schedule/allocate").json())
    client.patch(
        f"/api/tournaments/{tournament_id}/runtime/matches/{by_code['SF1']['id']}",
        json={"winner_side": "A"},
    )

    response = client.post(f"/api/tournaments/{tournament_id}/schedule/reschedule")
    assert response.status_code == 200
    rescheduled = _by_code(response.json())
    assert list(rescheduled) == ["SF2", "F", "3P"]
    assert rescheduled["SF2"]["scheduled_time"] == "2026-05-01T10:00:00"
    assert datetime.fromisoformat(rescheduled["F"]["scheduled_time"]) > datetime.fromisoformat(
        rescheduled["SF2"]["scheduled_time"]
    )


def test_unknown_tournament(client: TestClient):
    assert client.post("/api/tournaments/999/schedule/allocate").status_code == 404
    assert client.get("/api/tournaments/999/matches").status_code == 404
