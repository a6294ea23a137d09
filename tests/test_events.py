"""Tests for the play-by-play log: ordering, hydration and score replay."""
import sqlite3

import pytest

from conftest import HOME_TEAM


def test_events_newest_first(temp_db, scorekeeper, make_game):
    from ultiscore.events import get_game_events
    from ultiscore.live import record_goal, record_turnover

    game_id = make_game()
    record_goal(temp_db, game_id, "home", scorekeeper)
    record_turnover(temp_db, game_id, "stall", scorekeeper)
    record_goal(temp_db, game_id, "away", scorekeeper)

    events = get_game_events(temp_db, game_id)
    assert [e.type for e in events] == ["goal", "turnover", "goal", "gameStart"]
    assert events[0].scoring_team == "away"
    assert events[2].scoring_team == "home"
    timestamps = [e.timestamp for e in events]
    assert timestamps == sorted(timestamps, reverse=True)


def test_events_limit(temp_db, scorekeeper, make_game):
    from ultiscore.events import get_game_events
    from ultiscore.live import record_goal

    game_id = make_game()
    for _ in range(5):
        record_goal(temp_db, game_id, "home", scorekeeper)

    assert len(get_game_events(temp_db, game_id, limit=2)) == 2
    assert get_game_events(temp_db, game_id, limit=0) == []
    assert len(get_game_events(temp_db, game_id)) == 6


def test_events_default_limit(temp_db, scorekeeper, make_game, monkeypatch):
    from ultiscore.config import AppConfig
    from ultiscore.events import get_game_events
    from ultiscore.live import record_goal

    monkeypatch.setattr(AppConfig, "EVENTS_DEFAULT_LIMIT", 3)
    game_id = make_game()
    for _ in range(5):
        record_goal(temp_db, game_id, "away", scorekeeper)

    assert len(get_game_events(temp_db, game_id)) == 3


def test_events_unknown_game(temp_db):
    from ultiscore.errors import NotFoundError
    from ultiscore.events import get_game_events

    with pytest.raises(NotFoundError):
        get_game_events(temp_db, "missing")


def test_events_hydrated_with_players_and_user(temp_db, admin, scorekeeper, make_game):
    from ultiscore.events import get_game_events
    from ultiscore.live import record_goal
    from ultiscore.models import CreatePlayerRequest
    from ultiscore.teams import create_player

    scorer = create_player(temp_db, CreatePlayerRequest(
        first_name="Jordan", last_name="Kim", jersey_number=7, team_id=HOME_TEAM, position="cutter",
    ), admin)
    thrower = create_player(temp_db, CreatePlayerRequest(
        first_name="Riley", last_name="Lee", jersey_number=3, team_id=HOME_TEAM, position="handler",
    ), admin)

    game_id = make_game()
    record_goal(temp_db, game_id, "home", scorekeeper, scored_by=scorer, assisted_by=thrower)

    goal = get_game_events(temp_db, game_id)[0]
    assert goal.scored_by_player.last_name == "Kim"
    assert goal.assisted_by_player.position == "handler"
    assert goal.recorded_by_user.user_id == scorekeeper.user_id
    assert goal.recorded_by_user.name == "Scorekeeper"
    assert goal.recorded_by_user.role == "scorekeeper"

    # Tokens never leak into the listing
    assert "auth_subject" not in goal.recorded_by_user.model_dump()


def test_events_without_players_not_hydrated(temp_db, scorekeeper, make_game):
    from ultiscore.events import get_game_events
    from ultiscore.live import record_goal

    game_id = make_game()
    record_goal(temp_db, game_id, "home", scorekeeper)

    goal = get_game_events(temp_db, game_id)[0]
    assert goal.scored_by is None
    assert goal.scored_by_player is None
    assert goal.assisted_by_player is None
    assert goal.recorded_by_user.user_id == scorekeeper.user_id


def test_replay_score(temp_db, scorekeeper, make_game):
    from ultiscore.events import get_game_events, replay_score
    from ultiscore.live import record_goal, record_turnover

    game_id = make_game()
    for team in ["home", "home", "away"]:
        record_goal(temp_db, game_id, team, scorekeeper)
        record_turnover(temp_db, game_id, "drop", scorekeeper)

    events = get_game_events(temp_db, game_id)
    assert replay_score(events) == (2, 1)
    assert replay_score(list(reversed(events))) == (2, 1)
    assert replay_score([]) == (0, 0)


def test_score_timeline(temp_db, scorekeeper, make_game):
    from ultiscore.events import get_game_events, score_timeline
    from ultiscore.live import record_goal
    from ultiscore.queries import get_game_state

    game_id = make_game()
    for team in ["home", "away", "home"]:
        record_goal(temp_db, game_id, team, scorekeeper)

    state = get_game_state(temp_db, game_id)
    events = get_game_events(temp_db, game_id)
    timeline = score_timeline(events, state.home_score, state.away_score)

    assert [(t["home_score"], t["away_score"]) for t in timeline] == [
        (2, 1), (1, 1), (1, 0), (0, 0),
    ]
    assert [t["event_id"] for t in timeline] == [e.event_id for e in events]


def test_verify_consistency_detects_drift(temp_db, scorekeeper, make_game):
    from ultiscore.events import verify_consistency
    from ultiscore.live import record_goal

    game_id = make_game()
    record_goal(temp_db, game_id, "away", scorekeeper)
    assert verify_consistency(temp_db, game_id) is True

    conn = sqlite3.connect(temp_db)
    conn.execute("UPDATE live_state SET home_score = 4 WHERE game_id = ?", (game_id,))
    conn.commit()
    conn.close()

    assert verify_consistency(temp_db, game_id) is False


def test_lifecycle_events_carry_snapshot(temp_db, admin, scorekeeper, make_game):
    from ultiscore.events import get_game_events
    from ultiscore.lifecycle import end_game
    from ultiscore.live import advance_period, update_clock

    game_id = make_game("recreational")
    update_clock(temp_db, game_id, 900, False, scorekeeper)
    advance_period(temp_db, game_id, scorekeeper)
    update_clock(temp_db, game_id, 120, False, scorekeeper)
    end_game(temp_db, game_id, admin)

    end = get_game_events(temp_db, game_id)[0]
    assert end.type == "gameEnd"
    assert end.period == 2
    assert end.clock_seconds == 120
    assert end.recorded_by == admin.user_id
