"""Read access to games and their live state."""

import logging
from typing import Optional

from ultiscore.config import AppConfig
from ultiscore.db import get_db
from ultiscore.errors import InvalidInputError
from ultiscore.models import GameDetail, LiveState
from ultiscore.store import fetch_game, fetch_live_state, row_to_game, row_to_live_state, row_to_team

logger = logging.getLogger("ultiscore.queries")

STATUSES = ("upcoming", "live", "completed", "cancelled")


def get_game_state(db_path: str, game_id: str) -> LiveState:
    """Current snapshot for one game."""
    conn = get_db(db_path)
    try:
        return fetch_live_state(conn, game_id)
    finally:
        conn.close()


def _detail(conn, game) -> GameDetail:
    teams = {}
    for team_id in (game.home_team_id, game.away_team_id):
        row = conn.execute("SELECT * FROM teams WHERE team_id = ?", (team_id,)).fetchone()
        teams[team_id] = row_to_team(row) if row else None
    state_row = conn.execute(
        "SELECT * FROM live_state WHERE game_id = ?", (game.game_id,)
    ).fetchone()
    return GameDetail(
        **game.model_dump(),
        home_team=teams[game.home_team_id],
        away_team=teams[game.away_team_id],
        state=row_to_live_state(state_row) if state_row else None,
    )


def get_game(db_path: str, game_id: str) -> GameDetail:
    """A game with its teams and current state."""
    conn = get_db(db_path)
    try:
        return _detail(conn, fetch_game(conn, game_id))
    finally:
        conn.close()


def list_games(db_path: str, status: Optional[str] = None, limit: Optional[int] = None) -> list[GameDetail]:
    """Games newest scheduled first, optionally filtered by status."""
    if status is not None and status not in STATUSES:
        raise InvalidInputError(f"Invalid status: {status!r}")
    if limit is None:
        limit = AppConfig.GAMES_DEFAULT_LIMIT

    conn = get_db(db_path)
    try:
        if status:
            rows = conn.execute("""
                SELECT * FROM games WHERE status = ?
                ORDER BY scheduled_start DESC LIMIT ?
            """, (status, max(0, limit))).fetchall()
        else:
            rows = conn.execute("""
                SELECT * FROM games
                ORDER BY scheduled_start DESC LIMIT ?
            """, (max(0, limit),)).fetchall()
        return [_detail(conn, row_to_game(row)) for row in rows]
    finally:
        conn.close()


def get_live_games(db_path: str) -> list[GameDetail]:
    """Every game currently in progress."""
    conn = get_db(db_path)
    try:
        rows = conn.execute(
            "SELECT * FROM games WHERE status = 'live' ORDER BY scheduled_start"
        ).fetchall()
        return [_detail(conn, row_to_game(row)) for row in rows]
    finally:
        conn.close()
