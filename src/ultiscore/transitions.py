"""
Game status state machine.

The table is total: every (current, requested) pair not listed is illegal,
including any attempt to leave a terminal status.
"""
import logging

from ultiscore.errors import InvalidStateError
from ultiscore.events import new_event

logger = logging.getLogger("ultiscore.transitions")

LEGAL_TRANSITIONS = {
    "upcoming": frozenset({"live", "cancelled"}),
    "live": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

STATUS_EVENT_TYPES = {
    "live": "gameStart",
    "completed": "gameEnd",
    "cancelled": "gameCancelled",
}


def check_transition(current: str, requested: str) -> None:
    if requested not in LEGAL_TRANSITIONS[current]:
        raise InvalidStateError(
            f"Cannot change game status from {current} to {requested}"
        )


def require_status(game, *allowed: str, action: str) -> None:
    """Reject an action unless the game is in one of the allowed statuses."""
    if game.status not in allowed:
        raise InvalidStateError(f"Cannot {action}: game is {game.status}")


def require_not_terminal(game, action: str) -> None:
    if game.status in TERMINAL_STATUSES:
        raise InvalidStateError(f"Cannot {action}: game is {game.status}")


def apply_status_change(game, state, new_status, user, now, description=None):
    """
    Move a game to ``new_status`` and build the matching log entry.

    Stamps ``actual_start`` on going live and ``end_time`` on completion
    (only if unset), and stops the clock when the game finishes.

    Returns:
        The lifecycle event to append
    """
    check_transition(game.status, new_status)
    logger.info(f"Game {game.game_id}: {game.status} -> {new_status}")
    game.status = new_status

    if new_status == "live" and game.actual_start is None:
        game.actual_start = now
    if new_status == "completed" and game.end_time is None:
        game.end_time = now
    if new_status in TERMINAL_STATUSES:
        state.clock_running = False
        state.timeout_active = None

    return new_event(
        game,
        state,
        STATUS_EVENT_TYPES[new_status],
        user,
        now,
        description or f"Game status changed to {new_status}",
    )
