"""
Play-by-play event log.

Events are appended only as a side effect of engine mutations and are never
edited. The live score must always be reconstructible from the log: the
number of goal events for a side equals that side's score.
"""
import logging
import uuid

from ultiscore.config import AppConfig
from ultiscore.db import get_db
from ultiscore.models import Event, EventWithPlayers, UserSummary
from ultiscore.store import fetch_game, fetch_live_state, row_to_event, row_to_player

logger = logging.getLogger("ultiscore.events")


def new_event(game, state, event_type, user, now, description, **fields) -> Event:
    """Build an event stamped with the current clock/period snapshot."""
    return Event(
        event_id=uuid.uuid4().hex,
        game_id=game.game_id,
        timestamp=now,
        clock_seconds=state.clock_seconds,
        period=state.period,
        type=event_type,
        description=description,
        recorded_by=user.user_id,
        **fields,
    )


def _fetch_events(conn, game_id, limit=None):
    query = "SELECT * FROM events WHERE game_id = ? ORDER BY timestamp DESC, seq DESC"
    params = [game_id]
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    return [row_to_event(row) for row in conn.execute(query, params).fetchall()]


def get_game_events(db_path: str, game_id: str, limit: int | None = None) -> list[EventWithPlayers]:
    """
    Read the most recent events for a game, newest first.

    Args:
        db_path: Path to SQLite database
        game_id: Game to read
        limit: Maximum number of events (defaults to EVENTS_DEFAULT_LIMIT)

    Returns:
        Events hydrated with scorer, assister and recording user
    """
    if limit is None:
        limit = AppConfig.EVENTS_DEFAULT_LIMIT
    limit = max(0, limit)

    conn = get_db(db_path)
    try:
        fetch_game(conn, game_id)
        events = _fetch_events(conn, game_id, limit)

        players = {}
        users = {}

        def player(player_id):
            if player_id is None:
                return None
            if player_id not in players:
                row = conn.execute(
                    "SELECT * FROM players WHERE player_id = ?", (player_id,)
                ).fetchone()
                players[player_id] = row_to_player(row) if row else None
            return players[player_id]

        def user(user_id):
            if user_id not in users:
                row = conn.execute(
                    "SELECT user_id, name, role FROM users WHERE user_id = ?", (user_id,)
                ).fetchone()
                users[user_id] = UserSummary.model_validate(dict(row)) if row else None
            return users[user_id]

        hydrated = [
            EventWithPlayers(
                **event.model_dump(),
                scored_by_player=player(event.scored_by),
                assisted_by_player=player(event.assisted_by),
                recorded_by_user=user(event.recorded_by),
            )
            for event in events
        ]
    finally:
        conn.close()

    logger.debug(f"Loaded {len(hydrated)} events for game {game_id}")
    return hydrated


def replay_score(events) -> tuple[int, int]:
    """Count goal events per side. Order does not matter."""
    home_score = 0
    away_score = 0
    for event in events:
        if event.type != "goal":
            continue
        if event.scoring_team == "home":
            home_score += 1
        elif event.scoring_team == "away":
            away_score += 1
    return home_score, away_score


def score_timeline(events, home_score: int, away_score: int) -> list[dict]:
    """
    Score standing after each event, derived backward from the current snapshot.

    Args:
        events: Events newest first (as returned by ``get_game_events``)
        home_score: Current home score from the live state
        away_score: Current away score from the live state

    Returns:
        List of {"event_id", "home_score", "away_score"} newest first
    """
    timeline = []
    for event in events:
        timeline.append({
            "event_id": event.event_id,
            "home_score": home_score,
            "away_score": away_score,
        })
        if event.type == "goal":
            if event.scoring_team == "home":
                home_score -= 1
            elif event.scoring_team == "away":
                away_score -= 1
    return timeline


def verify_consistency(db_path: str, game_id: str) -> bool:
    """Check that goal events add up to the live score."""
    conn = get_db(db_path)
    try:
        fetch_game(conn, game_id)
        state = fetch_live_state(conn, game_id)
        events = _fetch_events(conn, game_id)
    finally:
        conn.close()

    home_score, away_score = replay_score(events)
    consistent = (home_score, away_score) == (state.home_score, state.away_score)
    if not consistent:
        logger.error(
            f"Score/log mismatch for {game_id}: state {state.home_score}-{state.away_score}, "
            f"log {home_score}-{away_score}"
        )
    return consistent
