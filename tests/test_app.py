"""Tests for the HTTP and WebSocket API."""
import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_TOKEN, AWAY_TEAM, HOME_TEAM, SCOREKEEPER_TOKEN, VIEWER_TOKEN

ADMIN = {"Authorization": f"Bearer {ADMIN_TOKEN}"}
SCOREKEEPER = {"Authorization": f"Bearer {SCOREKEEPER_TOKEN}"}
VIEWER = {"Authorization": f"Bearer {VIEWER_TOKEN}"}


@pytest.fixture
def client(temp_db, monkeypatch):
    """Create test client with temp database."""
    from ultiscore import app as app_module
    monkeypatch.setattr(app_module, "DB_PATH", temp_db)
    return TestClient(app_module.app)


def _game_body(game_format="tournament", **rules):
    return {
        "format": game_format,
        "home_team_id": HOME_TEAM,
        "away_team_id": AWAY_TEAM,
        "scheduled_start": 1_700_000_000_000,
        "venue": "Field 1",
        "rule_config": {"format": game_format, **rules},
    }


def _live_game(client, game_format="tournament", **rules):
    response = client.post("/games", json=_game_body(game_format, **rules), headers=ADMIN)
    assert response.status_code == 201
    game_id = response.json()["game_id"]
    assert client.post(f"/games/{game_id}/start", headers=ADMIN).status_code == 200
    return game_id


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_game(client):
    response = client.post("/games", json=_game_body("professional", quarter_length=10), headers=ADMIN)
    assert response.status_code == 201
    game_id = response.json()["game_id"]

    response = client.get(f"/games/{game_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "upcoming"
    assert data["rule_config"]["quarter_length"] == 10
    assert data["home_team"]["name"] == "Flyers"
    assert data["state"]["clock_seconds"] == 600


def test_create_game_auth_errors(client):
    response = client.post("/games", json=_game_body())
    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated", "code": "not_authenticated"}

    response = client.post("/games", json=_game_body(), headers={"Authorization": "Bearer bogus"})
    assert response.status_code == 401

    response = client.post("/games", json=_game_body(), headers=VIEWER)
    assert response.status_code == 403
    assert response.json()["code"] == "not_authorized"

    assert client.get("/games").json()["games"] == []


def test_create_game_validation_errors(client):
    body = _game_body()
    body["away_team_id"] = HOME_TEAM
    response = client.post("/games", json=body, headers=ADMIN)
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_input"

    # Request body that fails model validation
    body = _game_body()
    body["rule_config"]["stall_count"] = 8
    response = client.post("/games", json=body, headers=ADMIN)
    assert response.status_code == 422

    body = _game_body()
    body["home_team_id"] = "missing"
    response = client.post("/games", json=body, headers=ADMIN)
    assert response.status_code == 404


def test_scoring_flow(client):
    game_id = _live_game(client)

    response = client.post(f"/games/{game_id}/goal", json={"team": "home"}, headers=SCOREKEEPER)
    assert response.status_code == 200
    assert response.json()["new_score"] == 1

    response = client.post(f"/games/{game_id}/turnover", json={"turnover_type": "drop"}, headers=SCOREKEEPER)
    assert response.status_code == 200

    response = client.post(f"/games/{game_id}/goal", json={"team": "away"}, headers=SCOREKEEPER)
    assert response.json()["new_score"] == 1

    state = client.get(f"/games/{game_id}/state").json()
    assert state["home_score"] == 1
    assert state["away_score"] == 1
    assert state["possession"] == "away"

    events = client.get(f"/games/{game_id}/events").json()
    assert events["event_count"] == 4
    assert [e["type"] for e in events["events"]] == ["goal", "turnover", "goal", "gameStart"]
    assert events["events"][2]["recorded_by_user"]["name"] == "Scorekeeper"
    assert "auth_subject" not in events["events"][2]["recorded_by_user"]

    limited = client.get(f"/games/{game_id}/events", params={"limit": 1}).json()
    assert limited["event_count"] == 1

    timeline = client.get(f"/games/{game_id}/timeline").json()["timeline"]
    assert [(t["home_score"], t["away_score"]) for t in timeline] == [(1, 1), (1, 0), (1, 0), (0, 0)]


def test_goal_requires_authentication(client):
    game_id = _live_game(client)
    response = client.post(f"/games/{game_id}/goal", json={"team": "home"})
    assert response.status_code == 401
    assert client.get(f"/games/{game_id}/state").json()["home_score"] == 0


def test_goal_on_upcoming_game(client):
    response = client.post("/games", json=_game_body(), headers=ADMIN)
    game_id = response.json()["game_id"]

    response = client.post(f"/games/{game_id}/goal", json={"team": "home"}, headers=SCOREKEEPER)
    assert response.status_code == 409
    assert response.json() == {"detail": "Cannot record goal: game is upcoming", "code": "invalid_state"}


def test_unknown_game(client):
    response = client.get("/games/missing/state")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"

    response = client.post("/games/missing/goal", json={"team": "home"}, headers=SCOREKEEPER)
    assert response.status_code == 404


def test_goal_unknown_scorer(client):
    game_id = _live_game(client)
    response = client.post(f"/games/{game_id}/goal", json={"team": "home", "scored_by": "p1"}, headers=SCOREKEEPER)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
    assert client.get(f"/games/{game_id}/state").json()["home_score"] == 0


def test_clock_and_auto_end(client):
    game_id = _live_game(client, "professional")

    response = client.post(f"/games/{game_id}/clock", json={"clock_seconds": 900, "clock_running": False}, headers=SCOREKEEPER)
    assert response.status_code == 422

    response = client.post(f"/games/{game_id}/clock", json={"clock_seconds": 0, "clock_running": False}, headers=SCOREKEEPER)
    assert response.status_code == 200
    assert response.json()["state"]["clock_seconds"] == 0

    assert client.get(f"/games/{game_id}").json()["status"] == "completed"
    assert client.get(f"/games/{game_id}/events").json()["events"][0]["type"] == "gameEnd"


def test_timeouts_periods_and_substitutions(client):
    game_id = _live_game(client)

    assert client.post(f"/games/{game_id}/timeout", json={"team": "home"}, headers=SCOREKEEPER).status_code == 200
    assert client.post(f"/games/{game_id}/timeout", json={"team": "away"}, headers=SCOREKEEPER).status_code == 409
    assert client.post(f"/games/{game_id}/timeout/end", headers=SCOREKEEPER).status_code == 200

    response = client.post(f"/games/{game_id}/period", headers=SCOREKEEPER)
    assert response.json()["period"] == 2

    response = client.post(
        f"/games/{game_id}/substitution",
        json={"team": "away", "player_in": "p1", "player_out": "p2", "line": "O"},
        headers=SCOREKEEPER,
    )
    assert response.status_code == 200

    response = client.post(f"/games/{game_id}/possession", json={"team": "away"}, headers=SCOREKEEPER)
    assert response.json()["possession"] == "away"

    response = client.post(
        f"/games/{game_id}/gender-ratio", json={"team": "home", "male": 4, "female": 3}, headers=SCOREKEEPER,
    )
    assert response.status_code == 409


def test_lifecycle_routes(client):
    response = client.post("/games", json=_game_body(), headers=ADMIN)
    game_id = response.json()["game_id"]

    response = client.put(
        f"/games/{game_id}/rules", json={"rule_config": {"format": "tournament", "target_score": 11}}, headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["rule_config"]["target_score"] == 11

    assert client.post(f"/games/{game_id}/start", headers=SCOREKEEPER).status_code == 403
    assert client.post(f"/games/{game_id}/start", headers=ADMIN).json()["game_status"] == "live"
    assert [g["game_id"] for g in client.get("/games/live").json()["games"]] == [game_id]

    response = client.put(f"/games/{game_id}/rules", json={"rule_config": {"format": "tournament"}}, headers=ADMIN)
    assert response.status_code == 409

    assert client.post(f"/games/{game_id}/end", headers=ADMIN).json()["game_status"] == "completed"
    response = client.post(f"/games/{game_id}/status", json={"status": "live"}, headers=ADMIN)
    assert response.status_code == 409

    assert [g["game_id"] for g in client.get("/games", params={"status": "completed"}).json()["games"]] == [game_id]
    assert client.get("/games", params={"status": "bogus"}).status_code == 422

    assert client.delete(f"/games/{game_id}", headers=ADMIN).status_code == 200
    assert client.get(f"/games/{game_id}").status_code == 404


def test_teams_and_players(client):
    team = {"name": "Truck Stop", "abbreviation": "TS", "colors": {"primary": "#111", "secondary": "#eee"}}
    assert client.post("/teams", json=team, headers=SCOREKEEPER).status_code == 403

    response = client.post("/teams", json=team, headers=ADMIN)
    assert response.status_code == 201
    team_id = response.json()["team_id"]

    team["division"] = "open"
    assert client.put(f"/teams/{team_id}", json=team, headers=ADMIN).status_code == 200
    assert client.get(f"/teams/{team_id}").json()["division"] == "open"
    assert len(client.get("/teams").json()["teams"]) == 3

    player = {"first_name": "Ari", "last_name": "Cole", "jersey_number": 12, "team_id": team_id, "position": "handler"}
    assert client.post("/players", json=player, headers=ADMIN).status_code == 201
    player.update(jersey_number=13, is_active=False)
    assert client.post("/players", json=player, headers=ADMIN).status_code == 201

    players = client.get(f"/teams/{team_id}/players").json()["players"]
    assert [p["jersey_number"] for p in players] == [12, 13]
    active = client.get(f"/teams/{team_id}/players", params={"active_only": True}).json()["players"]
    assert [p["jersey_number"] for p in active] == [12]


def test_create_user(client):
    body = {"auth_subject": "fresh", "email": "fresh@example.com", "name": "Fresh"}
    response = client.post("/users", json=body)
    assert response.status_code == 200
    user_id = response.json()["user_id"]
    assert client.post("/users", json=body).json()["user_id"] == user_id

    body = {"auth_subject": "boss", "email": "boss@example.com", "name": "Boss", "role": "admin"}
    assert client.post("/users", json=body).status_code == 403
    assert client.post("/users", json=body, headers=ADMIN).status_code == 200


def test_websocket_receives_updates(client):
    game_id = _live_game(client)

    with client.websocket_connect(f"/ws/games/{game_id}") as ws:
        snapshot = ws.receive_json()
        assert snapshot["state"]["home_score"] == 0

        client.post(f"/games/{game_id}/goal", json={"team": "home"}, headers=SCOREKEEPER)
        update = ws.receive_json()
        assert update["state"]["home_score"] == 1
