"""Shared fixtures: a temp SQLite database with users and two teams."""
import json
import os
import sqlite3
import tempfile

import pytest

from ultiscore.store import now_ms

ADMIN_TOKEN = "admin-token"
SCOREKEEPER_TOKEN = "scorekeeper-token"
VIEWER_TOKEN = "viewer-token"

HOME_TEAM = "home-team"
AWAY_TEAM = "away-team"


@pytest.fixture
def temp_db():
    """Create a temporary database with the full schema and a few fixtures."""
    from ultiscore.schema import init_schema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    init_schema(db_path)

    now = now_ms()
    conn = sqlite3.connect(db_path)
    users = [
        ("user-admin", ADMIN_TOKEN, "admin@example.com", "Admin", "admin", 1, 1),
        ("user-scorekeeper", SCOREKEEPER_TOKEN, "sk@example.com", "Scorekeeper", "scorekeeper", 0, 0),
        ("user-viewer", VIEWER_TOKEN, "fan@example.com", "Viewer", "viewer", 0, 0),
    ]
    for user in users:
        conn.execute("""
            INSERT INTO users (
                user_id, auth_subject, email, name, role,
                can_manage_games, can_manage_teams, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, user + (now,))
    for team_id, name, abbrev in [(HOME_TEAM, "Flyers", "FLY"), (AWAY_TEAM, "Hammers", "HAM")]:
        conn.execute("""
            INSERT INTO teams (team_id, name, abbreviation, colors, division, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (team_id, name, abbrev, json.dumps({"primary": "#000", "secondary": "#fff"}), "open", now))
    conn.commit()
    conn.close()

    yield db_path

    # Cleanup
    os.unlink(db_path)


@pytest.fixture
def admin(temp_db):
    from ultiscore.auth import resolve_user
    return resolve_user(temp_db, ADMIN_TOKEN)


@pytest.fixture
def scorekeeper(temp_db):
    from ultiscore.auth import resolve_user
    return resolve_user(temp_db, SCOREKEEPER_TOKEN)


@pytest.fixture
def viewer(temp_db):
    from ultiscore.auth import resolve_user
    return resolve_user(temp_db, VIEWER_TOKEN)


def game_request(game_format="tournament", gender_ratio_required=False, scheduled_start=None, **rules):
    from ultiscore.models import CreateGameRequest

    return CreateGameRequest(
        format=game_format,
        home_team_id=HOME_TEAM,
        away_team_id=AWAY_TEAM,
        scheduled_start=scheduled_start or now_ms(),
        venue="Field 1",
        rule_config={"format": game_format, **rules},
        gender_ratio_required=gender_ratio_required,
    )


@pytest.fixture
def make_game(temp_db, admin):
    """Factory for games; started (live) unless ``start=False``."""
    from ultiscore.lifecycle import create_game, start_game

    def _make(game_format="tournament", start=True, **kwargs):
        game_id = create_game(temp_db, game_request(game_format, **kwargs), admin)
        if start:
            start_game(temp_db, game_id, admin)
        return game_id

    return _make


def count_rows(db_path, table, game_id):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE game_id = ?", (game_id,)).fetchone()[0]
    finally:
        conn.close()


def add_player(db_path, player_id, team_id=HOME_TEAM, jersey_number=1):
    conn = sqlite3.connect(db_path)
    conn.execute("""
        INSERT INTO players (
            player_id, team_id, first_name, last_name, jersey_number,
            position, primary_line, is_active, created_at
        ) VALUES (?, ?, 'Test', ?, ?, 'cutter', 'both', 1, ?)
    """, (player_id, team_id, player_id, jersey_number, now_ms()))
    conn.commit()
    conn.close()
