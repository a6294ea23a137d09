"""Format-specific auto-termination rules.

Both checks run against the snapshot after a mutation has been applied.
A game without the format's scoring/time bound never auto-ends.
"""
from ultiscore.models import period_length_seconds

TIMED_FORMATS = frozenset({"professional", "recreational"})


def goal_ends_game(game, state) -> bool:
    """Tournament games end once either side reaches the target score."""
    if game.status != "live" or game.format != "tournament":
        return False
    target = game.rule_config.target_score
    if not target:
        return False
    return max(state.home_score, state.away_score) >= target


def clock_ends_game(game, state) -> bool:
    """Timed formats end when the clock runs out."""
    if game.status != "live" or game.format not in TIMED_FORMATS:
        return False
    if period_length_seconds(game.rule_config) == 0:
        return False
    return state.clock_seconds <= 0
