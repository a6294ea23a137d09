"""
Game lifecycle: creation, rule edits, status transitions and deletion.

Every operation here needs the "manage games" capability.
"""
import logging
import uuid

from ultiscore.auth import require_manage_games
from ultiscore.db import get_db, transaction
from ultiscore.errors import InvalidInputError, NotFoundError
from ultiscore.models import CreateGameRequest, Game, LiveState, period_length_seconds
from ultiscore.store import (
    apply_mutation,
    fetch_game,
    insert_game,
    insert_live_state,
    now_ms,
    team_exists,
)
from ultiscore.transitions import apply_status_change, require_status

logger = logging.getLogger("ultiscore.lifecycle")


def _check_rules_match_format(game_format, rule_config):
    if rule_config.format != game_format:
        raise InvalidInputError(
            f"Rule configuration is for {rule_config.format} games, not {game_format}"
        )


def _reset_state_for_rules(state, rule_config):
    state.clock_seconds = period_length_seconds(rule_config)
    state.home_timeouts_remaining = rule_config.timeouts_per_half
    state.away_timeouts_remaining = rule_config.timeouts_per_half


def create_game(db_path: str, request: CreateGameRequest, user) -> str:
    """
    Create a game and its live state together.

    Returns:
        The new game_id
    """
    user = require_manage_games(user, "create games")
    _check_rules_match_format(request.format, request.rule_config)
    if request.home_team_id == request.away_team_id:
        raise InvalidInputError("A team cannot play itself")

    now = now_ms()
    game = Game(
        game_id=uuid.uuid4().hex,
        format=request.format,
        status="upcoming",
        home_team_id=request.home_team_id,
        away_team_id=request.away_team_id,
        scheduled_start=request.scheduled_start,
        venue=request.venue,
        field_info=request.field_info,
        rule_config=request.rule_config,
        gender_ratio_required=request.gender_ratio_required,
    )
    state = LiveState(
        game_id=game.game_id,
        last_update_time=now,
        last_updated_by=user.user_id,
    )
    _reset_state_for_rules(state, game.rule_config)

    conn = get_db(db_path)
    try:
        for team_id in (game.home_team_id, game.away_team_id):
            if not team_exists(conn, team_id):
                raise NotFoundError(f"Team {team_id} not found")
        with transaction(conn):
            insert_game(conn, game)
            insert_live_state(conn, state)
    finally:
        conn.close()

    logger.info(
        f"Created {game.format} game {game.game_id}: "
        f"{game.home_team_id} vs {game.away_team_id} at {game.venue}"
    )
    return game.game_id


def update_game_rules(db_path: str, game_id: str, rule_config, user) -> Game:
    """Replace the rule configuration of a game that has not started."""
    user = require_manage_games(user, "update game rules")

    def mutate(game, state, now):
        require_status(game, "upcoming", action="update rules")
        _check_rules_match_format(game.format, rule_config)
        game.rule_config = rule_config
        _reset_state_for_rules(state, rule_config)
        return []

    game, _, _ = apply_mutation(db_path, game_id, user, mutate)
    logger.info(f"Updated rules for game {game_id}: {rule_config.model_dump()}")
    return game


def start_game(db_path: str, game_id: str, user) -> Game:
    """upcoming -> live."""
    user = require_manage_games(user, "start games")

    def mutate(game, state, now):
        require_status(game, "upcoming", action="start game")
        return [apply_status_change(game, state, "live", user, now, "Game started")]

    game, _, _ = apply_mutation(db_path, game_id, user, mutate)
    return game


def end_game(db_path: str, game_id: str, user) -> Game:
    """live -> completed."""
    user = require_manage_games(user, "end games")

    def mutate(game, state, now):
        require_status(game, "live", action="end game")
        return [apply_status_change(game, state, "completed", user, now, "Game ended")]

    game, _, _ = apply_mutation(db_path, game_id, user, mutate)
    return game


def update_game_status(db_path: str, game_id: str, status: str, user) -> Game:
    """Generic transition, checked against the legal-transition table."""
    user = require_manage_games(user, "update game status")

    def mutate(game, state, now):
        return [apply_status_change(game, state, status, user, now)]

    game, _, _ = apply_mutation(db_path, game_id, user, mutate)
    return game


def delete_game(db_path: str, game_id: str, user) -> None:
    """Remove a game together with its live state and event log."""
    require_manage_games(user, "delete games")

    conn = get_db(db_path)
    try:
        fetch_game(conn, game_id)
        with transaction(conn):
            events = conn.execute("DELETE FROM events WHERE game_id = ?", (game_id,)).rowcount
            conn.execute("DELETE FROM live_state WHERE game_id = ?", (game_id,))
            conn.execute("DELETE FROM games WHERE game_id = ?", (game_id,))
    finally:
        conn.close()

    logger.info(f"Deleted game {game_id} and {events} events")
