"""
Row mapping and the optimistic read-modify-write loop.

Every write to a game goes through ``apply_mutation``: the snapshot is read
outside the write lock, the change is computed, and the commit is
conditioned on the live state ``version`` that was read. If another writer
got there first the whole unit (game row, live state, events) is rolled
back and recomputed from the fresh snapshot.
"""
import json
import logging
import sqlite3
import time

from ultiscore.config import AppConfig
from ultiscore.db import get_db, transaction
from ultiscore.errors import ConcurrencyError, NotFoundError, StaleStateError
from ultiscore.models import Event, Game, LiveState, Player, Team, User

logger = logging.getLogger("ultiscore.store")

EVENT_PAYLOAD_FIELDS = (
    "scoring_team",
    "scored_by",
    "assisted_by",
    "hockey_assist_by",
    "turnover_type",
    "turnover_by",
    "forced_by",
    "team",
    "player_in",
    "player_out",
    "line",
)


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def _json_or_none(value):
    return json.loads(value) if value else None


def _dump_or_none(model):
    return json.dumps(model.model_dump()) if model is not None else None


# ---------- Row -> model ----------

def row_to_game(row) -> Game:
    return Game.model_validate({
        "game_id": row["game_id"],
        "format": row["format"],
        "status": row["status"],
        "home_team_id": row["home_team_id"],
        "away_team_id": row["away_team_id"],
        "scheduled_start": row["scheduled_start"],
        "actual_start": row["actual_start"],
        "end_time": row["end_time"],
        "venue": row["venue"],
        "field_info": _json_or_none(row["field_info"]),
        "rule_config": json.loads(row["rule_config"]),
        "gender_ratio_required": bool(row["gender_ratio_required"]),
    })


def row_to_live_state(row) -> LiveState:
    return LiveState.model_validate({
        "game_id": row["game_id"],
        "home_score": row["home_score"],
        "away_score": row["away_score"],
        "period": row["period"],
        "clock_seconds": row["clock_seconds"],
        "clock_running": bool(row["clock_running"]),
        "possession": row["possession"],
        "point_started_with": row["point_started_with"],
        "home_timeouts_remaining": row["home_timeouts_remaining"],
        "away_timeouts_remaining": row["away_timeouts_remaining"],
        "timeout_active": _json_or_none(row["timeout_active"]),
        "home_gender_ratio": _json_or_none(row["home_gender_ratio"]),
        "away_gender_ratio": _json_or_none(row["away_gender_ratio"]),
        "last_update_time": row["last_update_time"],
        "last_updated_by": row["last_updated_by"],
        "version": row["version"],
    })


def row_to_event(row) -> Event:
    data = {
        "event_id": row["event_id"],
        "game_id": row["game_id"],
        "timestamp": row["timestamp"],
        "clock_seconds": row["clock_seconds"],
        "period": row["period"],
        "type": row["type"],
        "description": row["description"],
        "recorded_by": row["recorded_by"],
    }
    data.update(json.loads(row["payload"] or "{}"))
    return Event.model_validate(data)


def row_to_team(row) -> Team:
    return Team.model_validate({
        "team_id": row["team_id"],
        "name": row["name"],
        "abbreviation": row["abbreviation"],
        "colors": json.loads(row["colors"]),
        "logo": row["logo"],
        "division": row["division"],
    })


def row_to_player(row) -> Player:
    data = dict(row)
    data.pop("created_at", None)
    data["is_active"] = bool(data["is_active"])
    return Player.model_validate(data)


def row_to_user(row) -> User:
    data = dict(row)
    data.pop("created_at", None)
    data["can_manage_games"] = bool(data["can_manage_games"])
    data["can_manage_teams"] = bool(data["can_manage_teams"])
    return User.model_validate(data)


# ---------- Reads ----------

def fetch_game(conn: sqlite3.Connection, game_id: str) -> Game:
    row = conn.execute("SELECT * FROM games WHERE game_id = ?", (game_id,)).fetchone()
    if not row:
        raise NotFoundError(f"Game {game_id} not found")
    return row_to_game(row)


def fetch_live_state(conn: sqlite3.Connection, game_id: str) -> LiveState:
    row = conn.execute("SELECT * FROM live_state WHERE game_id = ?", (game_id,)).fetchone()
    if not row:
        raise NotFoundError(f"Game state for {game_id} not found")
    return row_to_live_state(row)


def team_exists(conn: sqlite3.Connection, team_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM teams WHERE team_id = ?", (team_id,)).fetchone()
    return row is not None


# ---------- Writes ----------

def insert_game(conn: sqlite3.Connection, game: Game) -> None:
    conn.execute("""
        INSERT INTO games (
            game_id, format, status, home_team_id, away_team_id,
            scheduled_start, actual_start, end_time, venue, field_info,
            rule_config, gender_ratio_required, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        game.game_id,
        game.format,
        game.status,
        game.home_team_id,
        game.away_team_id,
        game.scheduled_start,
        game.actual_start,
        game.end_time,
        game.venue,
        _dump_or_none(game.field_info),
        json.dumps(game.rule_config.model_dump()),
        1 if game.gender_ratio_required else 0,
        now_ms(),
    ))


def update_game(conn: sqlite3.Connection, game: Game) -> None:
    conn.execute("""
        UPDATE games SET
            status = ?, actual_start = ?, end_time = ?, rule_config = ?
        WHERE game_id = ?
    """, (
        game.status,
        game.actual_start,
        game.end_time,
        json.dumps(game.rule_config.model_dump()),
        game.game_id,
    ))


def _live_state_values(state: LiveState) -> tuple:
    return (
        state.home_score,
        state.away_score,
        state.period,
        state.clock_seconds,
        1 if state.clock_running else 0,
        state.possession,
        state.point_started_with,
        state.home_timeouts_remaining,
        state.away_timeouts_remaining,
        _dump_or_none(state.timeout_active),
        _dump_or_none(state.home_gender_ratio),
        _dump_or_none(state.away_gender_ratio),
        state.last_update_time,
        state.last_updated_by,
    )


def insert_live_state(conn: sqlite3.Connection, state: LiveState) -> None:
    conn.execute("""
        INSERT INTO live_state (
            home_score, away_score, period, clock_seconds, clock_running,
            possession, point_started_with, home_timeouts_remaining,
            away_timeouts_remaining, timeout_active, home_gender_ratio,
            away_gender_ratio, last_update_time, last_updated_by,
            game_id, version
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, _live_state_values(state) + (state.game_id, state.version))


def write_live_state(conn: sqlite3.Connection, state: LiveState, expected_version: int) -> None:
    """Overwrite the snapshot only if nobody else wrote since we read it.

    Raises:
        StaleStateError: the stored version no longer matches
    """
    cursor = conn.execute("""
        UPDATE live_state SET
            home_score = ?, away_score = ?, period = ?, clock_seconds = ?,
            clock_running = ?, possession = ?, point_started_with = ?,
            home_timeouts_remaining = ?, away_timeouts_remaining = ?,
            timeout_active = ?, home_gender_ratio = ?, away_gender_ratio = ?,
            last_update_time = ?, last_updated_by = ?,
            version = version + 1
        WHERE game_id = ? AND version = ?
    """, _live_state_values(state) + (state.game_id, expected_version))
    if cursor.rowcount != 1:
        raise StaleStateError(
            f"Live state for {state.game_id} changed since version {expected_version}"
        )
    state.version = expected_version + 1


def insert_event(conn: sqlite3.Connection, event: Event) -> None:
    payload = {
        field: getattr(event, field)
        for field in EVENT_PAYLOAD_FIELDS
        if getattr(event, field) is not None
    }
    conn.execute("""
        INSERT INTO events (
            event_id, game_id, timestamp, clock_seconds, period, type,
            payload, description, recorded_by
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        event.event_id,
        event.game_id,
        event.timestamp,
        event.clock_seconds,
        event.period,
        event.type,
        json.dumps(payload),
        event.description,
        event.recorded_by,
    ))


def apply_mutation(db_path: str, game_id: str, user: User, mutate):
    """
    Apply one logical game mutation atomically.

    Args:
        db_path: Path to SQLite database
        game_id: Game to mutate
        user: Authenticated caller, stamped on the live state
        mutate: Callable ``(game, state, now) -> list[Event]``. It edits the
            game and state copies in place and returns the events to append.
            Raising aborts the mutation with nothing written.

    Returns:
        Tuple of (game, state, events) as committed

    Raises:
        NotFoundError: game or its live state is missing
        ConcurrencyError: the version kept moving for MAX_WRITE_RETRIES attempts
    """
    attempts = max(1, AppConfig.MAX_WRITE_RETRIES)
    for attempt in range(1, attempts + 1):
        conn = get_db(db_path)
        try:
            # State before game: every game row write bumps the version, so a
            # game read after the version can never be older than it.
            state = fetch_live_state(conn, game_id)
            expected_version = state.version
            game = fetch_game(conn, game_id)
            before = game.model_copy(deep=True)

            now = now_ms()
            events = mutate(game, state, now) or []
            state.last_update_time = now
            state.last_updated_by = user.user_id

            with transaction(conn):
                write_live_state(conn, state, expected_version)
                if game != before:
                    update_game(conn, game)
                for event in events:
                    insert_event(conn, event)

            return game, state, events
        except StaleStateError as e:
            logger.warning(f"Write conflict on game {game_id} (attempt {attempt}/{attempts}): {e}")
        finally:
            conn.close()

    raise ConcurrencyError(
        f"Game {game_id} is being updated concurrently, please retry"
    )
