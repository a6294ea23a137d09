"""Teams and rosters referenced by games and events."""

import json
import logging
import uuid

from ultiscore.auth import require_manage_teams
from ultiscore.db import get_db
from ultiscore.errors import NotFoundError
from ultiscore.models import CreatePlayerRequest, CreateTeamRequest, Player, Team
from ultiscore.store import now_ms, row_to_player, row_to_team, team_exists

logger = logging.getLogger("ultiscore.teams")


def create_team(db_path: str, request: CreateTeamRequest, user) -> str:
    """Add a team. Returns the team_id."""
    require_manage_teams(user, "create teams")
    team_id = uuid.uuid4().hex

    conn = get_db(db_path)
    try:
        conn.execute("""
            INSERT INTO teams (team_id, name, abbreviation, colors, logo, division, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            team_id,
            request.name,
            request.abbreviation,
            json.dumps(request.colors.model_dump()),
            request.logo,
            request.division,
            now_ms(),
        ))
    finally:
        conn.close()

    logger.info(f"Created team {request.name} ({request.abbreviation})")
    return team_id


def update_team(db_path: str, team_id: str, request: CreateTeamRequest, user) -> str:
    require_manage_teams(user, "update teams")

    conn = get_db(db_path)
    try:
        cursor = conn.execute("""
            UPDATE teams SET name = ?, abbreviation = ?, colors = ?, logo = ?, division = ?
            WHERE team_id = ?
        """, (
            request.name,
            request.abbreviation,
            json.dumps(request.colors.model_dump()),
            request.logo,
            request.division,
            team_id,
        ))
        if cursor.rowcount == 0:
            raise NotFoundError(f"Team {team_id} not found")
    finally:
        conn.close()

    return team_id


def get_team(db_path: str, team_id: str) -> Team:
    conn = get_db(db_path)
    try:
        row = conn.execute("SELECT * FROM teams WHERE team_id = ?", (team_id,)).fetchone()
    finally:
        conn.close()
    if not row:
        raise NotFoundError(f"Team {team_id} not found")
    return row_to_team(row)


def list_teams(db_path: str) -> list[Team]:
    conn = get_db(db_path)
    try:
        rows = conn.execute("SELECT * FROM teams ORDER BY name").fetchall()
    finally:
        conn.close()
    return [row_to_team(row) for row in rows]


def create_player(db_path: str, request: CreatePlayerRequest, user) -> str:
    """Add a player to an existing team. Returns the player_id."""
    require_manage_teams(user, "manage rosters")
    player_id = uuid.uuid4().hex

    conn = get_db(db_path)
    try:
        if not team_exists(conn, request.team_id):
            raise NotFoundError(f"Team {request.team_id} not found")
        conn.execute("""
            INSERT INTO players (
                player_id, team_id, first_name, last_name, jersey_number,
                position, primary_line, gender, is_active, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            player_id,
            request.team_id,
            request.first_name,
            request.last_name,
            request.jersey_number,
            request.position,
            request.primary_line,
            request.gender,
            1 if request.is_active else 0,
            now_ms(),
        ))
    finally:
        conn.close()

    return player_id


def get_team_players(db_path: str, team_id: str, active_only: bool = False) -> list[Player]:
    """Roster for a team, ordered by jersey number."""
    conn = get_db(db_path)
    try:
        if not team_exists(conn, team_id):
            raise NotFoundError(f"Team {team_id} not found")
        if active_only:
            rows = conn.execute("""
                SELECT * FROM players WHERE team_id = ? AND is_active = 1
                ORDER BY jersey_number
            """, (team_id,)).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM players WHERE team_id = ? ORDER BY jersey_number",
                (team_id,),
            ).fetchall()
    finally:
        conn.close()
    return [row_to_player(row) for row in rows]
