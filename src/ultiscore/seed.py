"""
Database seeding functions for ultiscore.

This module provides functions to populate the database with sample teams,
rosters, users and games for development and testing purposes.
"""

import argparse
import json
import logging
import random
import sqlite3
from datetime import datetime, timedelta

from ultiscore.models import (
    Game,
    LiveState,
    ProfessionalRules,
    RecreationalRules,
    TournamentRules,
    period_length_seconds,
)
from ultiscore.schema import init_schema
from ultiscore.store import insert_game, insert_live_state, now_ms

logger = logging.getLogger("ultiscore.seed")

# ---------- Sample Data ----------

SAMPLE_TEAMS = [
    # Professional league
    {"team_id": "sea-cascades", "name": "Seattle Cascades", "abbreviation": "SEA",
     "colors": {"primary": "#00205B", "secondary": "#69BE28"}, "division": "open"},
    {"team_id": "sd-growlers", "name": "San Diego Growlers", "abbreviation": "SD",
     "colors": {"primary": "#1D1D1B", "secondary": "#F2A900"}, "division": "open"},
    # Club tournament
    {"team_id": "revolver", "name": "Revolver", "abbreviation": "REV",
     "colors": {"primary": "#000000", "secondary": "#C8102E"}, "division": "open"},
    {"team_id": "ring", "name": "Ring of Fire", "abbreviation": "ROF",
     "colors": {"primary": "#F47920", "secondary": "#000000"}, "division": "open"},
    # Rec league
    {"team_id": "huck-norris", "name": "Huck Norris", "abbreviation": "HCK",
     "colors": {"primary": "#2E7D32", "secondary": "#FFFFFF"}, "division": "mixed"},
    {"team_id": "disc-jockeys", "name": "Disc Jockeys", "abbreviation": "DJS",
     "colors": {"primary": "#6A1B9A", "secondary": "#FDD835"}, "division": "mixed"},
]

SAMPLE_USERS = [
    {"user_id": "user-admin", "auth_subject": "admin-token", "email": "admin@example.com",
     "name": "League Admin", "role": "admin"},
    {"user_id": "user-scorekeeper", "auth_subject": "scorekeeper-token", "email": "scores@example.com",
     "name": "Field Scorekeeper", "role": "scorekeeper"},
    {"user_id": "user-viewer", "auth_subject": "viewer-token", "email": "fan@example.com",
     "name": "Sideline Fan", "role": "viewer"},
]

# Player name pools for generation
FIRST_NAMES = [
    "Alex", "Brodie", "Casey", "Devin", "Emery", "Finley", "Gray", "Harper",
    "Indy", "Jordan", "Kai", "Logan", "Morgan", "Nico", "Oakley", "Parker",
    "Quinn", "Riley", "Sage", "Taylor", "Val", "Wren", "Rowan", "Sky",
]

LAST_NAMES = [
    "Smith", "Johnson", "Nguyen", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Kim", "Martinez", "Anderson", "Taylor", "Thomas", "Moore", "Jackson",
    "Martin", "Lee", "Thompson", "White", "Harris", "Clark", "Lewis", "Walker",
]

POSITIONS = ["handler", "handler", "cutter", "cutter", "cutter"]  # Weighted toward cutters
LINES = ["O", "D", "both"]


# ---------- Seeding Functions ----------

def seed_users(conn: sqlite3.Connection) -> int:
    """Seed one user per role."""
    now = now_ms()
    count = 0
    for user in SAMPLE_USERS:
        is_admin = 1 if user["role"] == "admin" else 0
        try:
            conn.execute("""
                INSERT INTO users (
                    user_id, auth_subject, email, name, role,
                    can_manage_games, can_manage_teams, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user["user_id"],
                user["auth_subject"],
                user["email"],
                user["name"],
                user["role"],
                is_admin,
                is_admin,
                now,
            ))
            count += 1
        except sqlite3.IntegrityError:
            pass  # Already exists
    return count


def seed_teams(conn: sqlite3.Connection) -> int:
    """Seed sample teams."""
    now = now_ms()
    count = 0
    for team in SAMPLE_TEAMS:
        try:
            conn.execute("""
                INSERT INTO teams (team_id, name, abbreviation, colors, logo, division, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                team["team_id"],
                team["name"],
                team["abbreviation"],
                json.dumps(team["colors"]),
                team.get("logo"),
                team.get("division"),
                now,
            ))
            count += 1
        except sqlite3.IntegrityError:
            pass
    return count


def seed_players(conn: sqlite3.Connection, players_per_team: int = 14) -> int:
    """Generate a roster for every team that has none yet."""
    now = now_ms()
    count = 0

    teams = conn.execute("SELECT team_id, division FROM teams ORDER BY team_id").fetchall()
    for team in teams:
        existing = conn.execute(
            "SELECT COUNT(*) FROM players WHERE team_id = ?", (team["team_id"],)
        ).fetchone()[0]
        if existing:
            continue

        for jersey_num in range(1, players_per_team + 1):
            if team["division"] == "mixed":
                gender = "M" if jersey_num % 2 else "F"
            else:
                gender = None
            try:
                conn.execute("""
                    INSERT INTO players (
                        player_id, team_id, first_name, last_name, jersey_number,
                        position, primary_line, gender, is_active, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    f"{team['team_id']}-{jersey_num}",
                    team["team_id"],
                    random.choice(FIRST_NAMES),
                    random.choice(LAST_NAMES),
                    jersey_num,
                    random.choice(POSITIONS),
                    random.choice(LINES),
                    gender,
                    1,
                    now,
                ))
                count += 1
            except sqlite3.IntegrityError:
                pass

    return count


def seed_games(conn: sqlite3.Connection) -> int:
    """Create one upcoming game per format for tomorrow evening."""
    tomorrow = (datetime.now() + timedelta(days=1)).replace(hour=18, minute=0, second=0, microsecond=0)

    fixtures = [
        ("sea-cascades", "sd-growlers", "Memorial Stadium", ProfessionalRules(), False),
        ("revolver", "ring", "Field 3", TournamentRules(), False),
        ("huck-norris", "disc-jockeys", "Central Park South", RecreationalRules(stall_count=7), True),
    ]

    count = 0
    for i, (home, away, venue, rules, gender_ratio) in enumerate(fixtures):
        start = tomorrow + timedelta(hours=i * 2)
        game = Game(
            game_id=f"game-{home}-{away}",
            format=rules.format,
            home_team_id=home,
            away_team_id=away,
            scheduled_start=int(start.timestamp() * 1000),
            venue=venue,
            rule_config=rules,
            gender_ratio_required=gender_ratio,
        )
        state = LiveState(
            game_id=game.game_id,
            clock_seconds=period_length_seconds(rules),
            home_timeouts_remaining=rules.timeouts_per_half,
            away_timeouts_remaining=rules.timeouts_per_half,
            last_update_time=now_ms(),
            last_updated_by="user-admin",
        )
        try:
            insert_game(conn, game)
            insert_live_state(conn, state)
            count += 1
        except sqlite3.IntegrityError:
            pass

    return count


def clear_all(conn: sqlite3.Connection) -> dict:
    """Clear all seeded data."""
    tables = ["events", "live_state", "games", "players", "teams", "users"]

    counts = {}
    for table in tables:
        result = conn.execute(f"DELETE FROM {table}")
        counts[table] = result.rowcount

    return counts


def seed_all(db_path: str, players_per_team: int = 14) -> dict:
    """Seed all sample data in dependency order."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    results = {}
    try:
        results["users"] = seed_users(conn)
        results["teams"] = seed_teams(conn)
        results["players"] = seed_players(conn, players_per_team)
        results["games"] = seed_games(conn)
        conn.commit()
    finally:
        conn.close()

    return results


def main() -> None:
    from ultiscore.config import AppConfig
    from ultiscore.log import init_logging

    parser = argparse.ArgumentParser(description="Seed sample teams, users and games.")
    parser.add_argument("--db", type=str, default=AppConfig.DB_PATH, help="SQLite database path.")
    parser.add_argument("--players", type=int, default=14, help="Players per team.")
    parser.add_argument("--clear", action="store_true", help="Delete existing data first.")
    args = parser.parse_args()

    init_logging("seed", color="dim magenta")
    init_schema(args.db)

    if args.clear:
        conn = sqlite3.connect(args.db)
        try:
            counts = clear_all(conn)
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Cleared: {counts}")

    results = seed_all(args.db, args.players)
    for table, count in results.items():
        logger.info(f"  {table:10s} {count} added")


if __name__ == "__main__":
    main()
