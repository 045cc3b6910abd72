from fastapi.testclient import TestClient


def _tournament(client: TestClient) -> int:
    response = client.post(
        "/api/tournaments",
        json={"name": "Days", "start_date": "2026-05-01", "end_date": "2026-05-02"},
    )
    return response.json()["id"]


def test_override_window(client: TestClient):
    tournament_id = _tournament(client)
    response = client.put(
        f"/api/tournaments/{tournament_id}/days/2026-05-02",
        json={"is_active": True, "start_time": "14:00:00", "end_time": "18:00:00"},
    )

    assert response.status_code == 200
    assert response.json()["start_time"] == "14:00:00"


def test_overnight_window_allowed(client: TestClient):
    tournament_id = _tournament(client)
    response = client.put(
        f"/api/tournaments/{tournament_id}/days/2026-05-01",
        json={"is_active": True, "start_time": "22:00:00", "end_time": "02:00:00"},
    )
    assert response.status_code == 200


def test_empty_window_rejected(client: TestClient):
    tournament_id = _tournament(client)
    response = client.put(
        f"/api/tournaments/{tournament_id}/days/2026-05-01",
        json={"is_active": True, "start_time": "10:00:00", "end_time": "10:00:00"},
    )
    assert response.status_code == 422


def test_close_day(client: TestClient):
    tournament_id = _tournament(client)
    response = client.put(f"/api/tournaments/{tournament_id}/days/2026-05-01", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["is_active"] is False


def test_unknown_day(client: TestClient):
    tournament_id = _tournament(client)
    response = client.put(f"/api/tournaments/{tournament_id}/days/2026-06-01", json={"is_active": False})
    assert response.status_code == 404
