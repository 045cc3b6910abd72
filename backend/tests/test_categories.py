import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def tournament_id(client: TestClient) -> int:
    response = client.post(
        "/api/tournaments",
        json={"name": "Club Cup", "start_date": "2026-05-01", "end_date": "2026-05-02", "court_count": 2},
    )
    return response.json()["id"]


def _category(client: TestClient, tournament_id: int, **overrides):
    payload = {"name": "Open", "format": "round_robin", "participant_arity": "team"}
    payload.update(overrides)
    return client.post(f"/api/tournaments/{tournament_id}/categories", json=payload)


def _add_participants(client: TestClient, category_id: int, count: int):
    for i in range(1, count + 1):
        response = client.post(f"/api/categories/{category_id}/participants", json={"display_name": f"Team {i}"})
        assert response.status_code == 201


def test_create_and_list(client: TestClient, tournament_id: int):
    response = _category(client, tournament_id, format="knockout", knockout_depth="Semifinal")
    assert response.status_code == 201
    assert response.json()["knockout_depth"] == "semifinals"

    listed = client.get(f"/api/tournaments/{tournament_id}/categories").json()
    assert [c["name"] for c in listed] == ["Open"]


def test_knockout_requires_depth(client: TestClient, tournament_id: int):
    assert _category(client, tournament_id, format="knockout").status_code == 422


def test_unknown_depth(client: TestClient, tournament_id: int):
    assert _category(client, tournament_id, format="knockout", knockout_depth="eighths").status_code == 422


def test_duplicate_name(client: TestClient, tournament_id: int):
    _category(client, tournament_id)
    assert _category(client, tournament_id).status_code == 409


def test_duplicate_participant(client: TestClient, tournament_id: int):
    category_id = _category(client, tournament_id).json()["id"]
    _add_participants(client, category_id, 1)
    response = client.post(f"/api/categories/{category_id}/participants", json={"display_name": "Team 1"})
    assert response.status_code == 409


def test_generate_round_robin(client: TestClient, tournament_id: int):
    category_id = _category(client, tournament_id).json()["id"]
    _add_participants(client, category_id, 4)

    response = client.post(f"/api/categories/{category_id}/generate")
    assert response.status_code == 200
    assert response.json() == {"category_id": category_id, "matches_generated": 6, "matches_populated": 0}

    participants = client.get(f"/api/categories/{category_id}/participants").json()
    assert {p["group_label"] for p in participants} == {"A"}

    # Regenerating replaces the matches instead of duplicating them
    client.post(f"/api/categories/{category_id}/generate")
    matches = client.get(f"/api/tournaments/{tournament_id}/matches").json()
    assert len(matches) == 6


def test_generate_too_few_participants(client: TestClient, tournament_id: int):
    category_id = _category(client, tournament_id, format="american", participant_arity="individual").json()["id"]
    _add_participants(client, category_id, 3)
    assert client.post(f"/api/categories/{category_id}/generate").status_code == 422


def test_generate_mixed_american(client: TestClient, tournament_id: int):
    category_id = _category(
        client, tournament_id, format="mixed_american", participant_arity="individual", target_matches_per_participant=2
    ).json()["id"]
    for i, gender in enumerate(["m", "F", "M", "f"], start=1):
        response = client.post(
            f"/api/categories/{category_id}/participants", json={"display_name": f"Player {i}", "gender": gender}
        )
        assert response.status_code == 201
        assert response.json()["gender"] == gender.upper()

    bad = client.post(f"/api/categories/{category_id}/participants", json={"display_name": "Player 5", "gender": "X"})
    assert bad.status_code == 422

    response = client.post(f"/api/categories/{category_id}/generate")
    assert response.status_code == 200
    assert response.json()["matches_generated"] == 2

def test_generation_locked_after_results(client: TestClient, tournament_id: int):
    category_id = _category(client, tournament_id).json()["id"]
    _add_participants(client, category_id, 3)
    client.post(f"/api/categories/{category_id}/generate")
    match = client.get(f"/api/tournaments/{tournament_id}/matches").json()[0]
    client.patch(
        f"/api/tournaments/{tournament_id}/runtime/matches/{match['id']}",
        json={"score": {"sets": [{"a": 6, "b": 2}]}},
    )

    assert client.post(f"/api/categories/{category_id}/generate").status_code == 409


def test_qualification(client: TestClient, tournament_id: int):
    category_id = _category(
        client,
        tournament_id,
        format="groups_knockout",
        participant_arity="individual",
        number_of_groups=3,
        knockout_depth="quarterfinals",
    ).json()["id"]

    response = client.get(f"/api/categories/{category_id}/qualification")
    assert response.status_code == 200
    assert response.json() == {
        "qualified_per_group": 4,
        "extra_wildcards_needed": 0,
        "total_qualified": 12,
        "wildcard_rank_threshold": 5,
    }


def test_qualification_only_for_groups_knockout(client: TestClient, tournament_id: int):
    category_id = _category(client, tournament_id).json()["id"]
    assert client.get(f"/api/categories/{category_id}/qualification").status_code == 422


def test_standings(client: TestClient, tournament_id: int):
    category_id = _category(client, tournament_id).json()["id"]
    _add_participants(client, category_id, 3)
    client.post(f"/api/categories/{category_id}/generate")

    for match in client.get(f"/api/tournaments/{tournament_id}/matches").json():
        a, b = match["slot1"], match["slot2"]
        score = {"sets": [{"a": 6, "b": 1}]} if a < b else {"sets": [{"a": 1, "b": 6}]}
        response = client.patch(
            f"/api/tournaments/{tournament_id}/runtime/matches/{match['id']}", json={"score": score}
        )
        assert response.status_code == 200

    standings = client.get(f"/api/categories/{category_id}/standings").json()
    rows = standings["A"]
    assert [r["position"] for r in rows] == [1, 2, 3]
    assert [r["wins"] for r in rows] == [2, 1, 0]
    assert rows[0]["display_name"] == "Team 1"
    assert rows[0]["points"] == 4


def test_unknown_category(client: TestClient):
    assert client.get("/api/categories/999/participants").status_code == 404
    assert client.post("/api/categories/999/generate").status_code == 404
