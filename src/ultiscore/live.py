"""
Live state mutator.

Each scorekeeping action is one read-modify-write-and-log unit run through
``store.apply_mutation``. Any authenticated user may score a game; no
elevated capability is needed. Auto-termination is evaluated after goals
and clock updates and cascades within the same transaction.
"""
import logging
from typing import get_args

from ultiscore.auth import require_user
from ultiscore.db import get_db
from ultiscore.errors import InvalidInputError, InvalidStateError, NotFoundError
from ultiscore.events import new_event
from ultiscore.models import (
    GenderRatio,
    TimeoutRecord,
    TurnoverType,
    other_side,
    period_length_seconds,
)
from ultiscore.store import apply_mutation
from ultiscore.termination import TIMED_FORMATS, clock_ends_game, goal_ends_game
from ultiscore.transitions import apply_status_change, require_not_terminal, require_status

logger = logging.getLogger("ultiscore.live")

SIDES = ("home", "away")
TURNOVER_TYPES = get_args(TurnoverType)


def _check_side(team):
    if team not in SIDES:
        raise InvalidInputError(f"Invalid team: {team!r} (expected home or away)")


def _check_players(db_path, *player_ids):
    """Every referenced player must be on a roster."""
    wanted = {p for p in player_ids if p is not None}
    if not wanted:
        return
    conn = get_db(db_path)
    try:
        for player_id in sorted(wanted):
            row = conn.execute(
                "SELECT 1 FROM players WHERE player_id = ?", (player_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Player {player_id} not found")
    finally:
        conn.close()


def record_goal(db_path, game_id, team, user, scored_by=None, assisted_by=None, hockey_assist_by=None):
    """
    Add one point for ``team`` and log the goal.

    In tournament play, reaching the target score completes the game.

    Returns:
        dict with event_id and the scoring side's new score
    """
    user = require_user(user)
    _check_side(team)
    _check_players(db_path, scored_by, assisted_by, hockey_assist_by)

    def mutate(game, state, now):
        require_status(game, "live", action="record goal")
        if team == "home":
            state.home_score += 1
        else:
            state.away_score += 1

        events = [new_event(
            game, state, "goal", user, now,
            f"Goal scored by {team} team",
            scoring_team=team,
            scored_by=scored_by,
            assisted_by=assisted_by,
            hockey_assist_by=hockey_assist_by,
        )]

        if goal_ends_game(game, state):
            target = game.rule_config.target_score
            events.append(apply_status_change(
                game, state, "completed", user, now,
                f"Game over: {team} team reached {target}",
            ))
        return events

    game, state, events = apply_mutation(db_path, game_id, user, mutate)
    new_score = state.home_score if team == "home" else state.away_score
    logger.info(
        f"Goal {team} in {game_id}: {state.home_score}-{state.away_score}"
        + (" (game over)" if game.status == "completed" else "")
    )
    return {"event_id": events[0].event_id, "new_score": new_score}


def update_clock(db_path, game_id, clock_seconds, clock_running, user):
    """
    Set the game clock.

    Timed formats count down from the period length: values must stay
    within ``[0, period length]`` and may not go up while the clock keeps
    running. Raising a stopped clock is allowed to correct operator error.
    Reaching zero in a live timed game completes it.
    """
    user = require_user(user)
    if clock_seconds < 0:
        raise InvalidInputError("Clock cannot be negative")

    def mutate(game, state, now):
        require_not_terminal(game, "update clock")
        if game.format in TIMED_FORMATS:
            limit = period_length_seconds(game.rule_config)
            if limit and clock_seconds > limit:
                raise InvalidInputError(f"Clock cannot exceed the period length of {limit}s")
            if state.clock_running and clock_running and clock_seconds > state.clock_seconds:
                raise InvalidInputError(
                    f"Clock cannot go up from {state.clock_seconds}s while running; stop it first"
                )

        state.clock_seconds = clock_seconds
        state.clock_running = clock_running

        if clock_ends_game(game, state):
            state.clock_seconds = 0
            return [apply_status_change(
                game, state, "completed", user, now, "Game over: time expired",
            )]
        return []

    game, state, _ = apply_mutation(db_path, game_id, user, mutate)
    logger.debug(f"Clock {game_id}: {state.clock_seconds}s running={state.clock_running}")
    if game.status == "completed":
        logger.info(f"Game {game_id} ended on time: {state.home_score}-{state.away_score}")
    return state


def update_possession(db_path, game_id, team, user):
    """Set possession directly. Not logged."""
    user = require_user(user)
    _check_side(team)

    def mutate(game, state, now):
        require_not_terminal(game, "update possession")
        state.possession = team
        return []

    _, state, _ = apply_mutation(db_path, game_id, user, mutate)
    return state


def record_turnover(db_path, game_id, turnover_type, user, turnover_by=None, forced_by=None):
    """Flip possession and log the turnover."""
    user = require_user(user)
    if turnover_type not in TURNOVER_TYPES:
        raise InvalidInputError(f"Invalid turnover type: {turnover_type!r}")

    def mutate(game, state, now):
        require_status(game, "live", action="record turnover")
        state.possession = other_side(state.possession)
        return [new_event(
            game, state, "turnover", user, now,
            f"Turnover: {turnover_type}",
            turnover_type=turnover_type,
            turnover_by=turnover_by,
            forced_by=forced_by,
        )]

    _, state, events = apply_mutation(db_path, game_id, user, mutate)
    logger.info(f"Turnover ({turnover_type}) in {game_id}, {state.possession} has the disc")
    return events[0]


def call_timeout(db_path, game_id, team, user):
    """Spend one of ``team``'s timeouts and stop the clock."""
    user = require_user(user)
    _check_side(team)

    def mutate(game, state, now):
        require_status(game, "live", action="call timeout")
        if state.timeout_active is not None:
            raise InvalidStateError(
                f"Cannot call timeout: {state.timeout_active.team} timeout in progress"
            )
        field = f"{team}_timeouts_remaining"
        if getattr(state, field) <= 0:
            raise InvalidStateError(f"Cannot call timeout: {team} team has none remaining")
        setattr(state, field, getattr(state, field) - 1)
        state.clock_running = False
        state.timeout_active = TimeoutRecord(team=team, start_time=now)
        return [new_event(
            game, state, "timeout", user, now,
            f"Timeout called by {team} team",
            team=team,
        )]

    _, state, events = apply_mutation(db_path, game_id, user, mutate)
    return events[0]


def end_timeout(db_path, game_id, user):
    """Clear the active timeout."""
    user = require_user(user)

    def mutate(game, state, now):
        require_status(game, "live", action="end timeout")
        if state.timeout_active is None:
            raise InvalidStateError("Cannot end timeout: no timeout in progress")
        state.timeout_active = None
        return []

    _, state, _ = apply_mutation(db_path, game_id, user, mutate)
    return state


def _starts_new_half(game_format, period):
    # Professional quarters: halves begin at quarter 3 (and each overtime pair).
    if game_format == "professional":
        return period % 2 == 1
    return True


def advance_period(db_path, game_id, user):
    """
    Close the current period and begin the next one.

    Logs ``periodEnd`` with the closing snapshot, stops the clock, resets it
    to the period length for timed formats and restores timeouts when a new
    half begins.
    """
    user = require_user(user)

    def mutate(game, state, now):
        require_status(game, "live", action="advance period")
        event = new_event(
            game, state, "periodEnd", user, now,
            f"End of period {state.period}",
        )
        state.period += 1
        state.clock_running = False
        state.timeout_active = None
        if game.format in TIMED_FORMATS:
            state.clock_seconds = period_length_seconds(game.rule_config)
        if _starts_new_half(game.format, state.period):
            state.home_timeouts_remaining = game.rule_config.timeouts_per_half
            state.away_timeouts_remaining = game.rule_config.timeouts_per_half
        return [event]

    _, state, _ = apply_mutation(db_path, game_id, user, mutate)
    logger.info(f"Game {game_id} now in period {state.period}")
    return state


def record_substitution(db_path, game_id, team, user, player_in=None, player_out=None, line=None):
    """Log a line change or substitution. Does not touch the snapshot."""
    user = require_user(user)
    _check_side(team)

    def mutate(game, state, now):
        require_status(game, "live", action="record substitution")
        return [new_event(
            game, state, "substitution", user, now,
            f"Substitution ({team})" + (f", {line} line" if line else ""),
            team=team,
            player_in=player_in,
            player_out=player_out,
            line=line,
        )]

    _, _, events = apply_mutation(db_path, game_id, user, mutate)
    return events[0]


def update_gender_ratio(db_path, game_id, team, male, female, user):
    """Set the on-field gender counts for one side (mixed division only)."""
    user = require_user(user)
    _check_side(team)
    if male < 0 or female < 0:
        raise InvalidInputError("Gender counts cannot be negative")
    ratio = GenderRatio(male=male, female=female)

    def mutate(game, state, now):
        require_not_terminal(game, "update gender ratio")
        if not game.gender_ratio_required:
            raise InvalidStateError("Cannot update gender ratio: game does not track it")
        setattr(state, f"{team}_gender_ratio", ratio)
        return []

    _, state, _ = apply_mutation(db_path, game_id, user, mutate)
    return state
