"""
Database schema for ultiscore.

This module defines all table schemas for the scorekeeping database.
Tables are created in dependency order to respect foreign key constraints.
"""

import logging
import sqlite3

logger = logging.getLogger("ultiscore.schema")

SCHEMA_VERSION = "1.0.0"

# =============================================================================
# Table Definitions (in dependency order)
# =============================================================================

TABLES = """
-- Identities resolved from bearer tokens
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    auth_subject TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL,
    name TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'viewer',   -- "admin", "scorekeeper", "viewer"
    can_manage_games INTEGER NOT NULL DEFAULT 0,
    can_manage_teams INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS teams (
    team_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    abbreviation TEXT NOT NULL,
    colors TEXT NOT NULL,                  -- JSON {primary, secondary}
    logo TEXT,
    division TEXT,                         -- "open", "womens", "mixed"
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS players (
    player_id TEXT PRIMARY KEY,
    team_id TEXT NOT NULL,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    jersey_number INTEGER NOT NULL,
    position TEXT NOT NULL,                -- "handler", "cutter"
    primary_line TEXT NOT NULL,            -- "O", "D", "both"
    gender TEXT,                           -- "M", "F"
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at INTEGER NOT NULL,
    FOREIGN KEY (team_id) REFERENCES teams(team_id)
);

-- Match definitions
CREATE TABLE IF NOT EXISTS games (
    game_id TEXT PRIMARY KEY,
    format TEXT NOT NULL,                  -- "professional", "tournament", "recreational"
    status TEXT NOT NULL DEFAULT 'upcoming',
    home_team_id TEXT NOT NULL,
    away_team_id TEXT NOT NULL,
    scheduled_start INTEGER NOT NULL,      -- Unix ms
    actual_start INTEGER,
    end_time INTEGER,
    venue TEXT NOT NULL,
    field_info TEXT,                       -- JSON
    rule_config TEXT NOT NULL,             -- JSON, tagged by format
    gender_ratio_required INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    FOREIGN KEY (home_team_id) REFERENCES teams(team_id),
    FOREIGN KEY (away_team_id) REFERENCES teams(team_id)
);

-- Current snapshot, exactly one row per game
CREATE TABLE IF NOT EXISTS live_state (
    game_id TEXT PRIMARY KEY,
    home_score INTEGER NOT NULL DEFAULT 0,
    away_score INTEGER NOT NULL DEFAULT 0,
    period INTEGER NOT NULL DEFAULT 1,
    clock_seconds INTEGER NOT NULL DEFAULT 0,
    clock_running INTEGER NOT NULL DEFAULT 0,
    possession TEXT NOT NULL DEFAULT 'home',
    point_started_with TEXT NOT NULL DEFAULT 'home',
    home_timeouts_remaining INTEGER NOT NULL DEFAULT 0,
    away_timeouts_remaining INTEGER NOT NULL DEFAULT 0,
    timeout_active TEXT,                   -- JSON {team, start_time}
    home_gender_ratio TEXT,                -- JSON {male, female}
    away_gender_ratio TEXT,
    last_update_time INTEGER NOT NULL,
    last_updated_by TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0,    -- optimistic concurrency token
    FOREIGN KEY (game_id) REFERENCES games(game_id)
);

-- Append-only play-by-play log
CREATE TABLE IF NOT EXISTS events (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL UNIQUE,
    game_id TEXT NOT NULL,
    timestamp INTEGER NOT NULL,            -- Unix ms
    clock_seconds INTEGER NOT NULL,
    period INTEGER NOT NULL,
    type TEXT NOT NULL,
    payload TEXT NOT NULL,                 -- JSON, type-specific fields
    description TEXT NOT NULL,
    recorded_by TEXT NOT NULL,
    FOREIGN KEY (game_id) REFERENCES games(game_id)
);
"""

INDEXES = """
CREATE INDEX IF NOT EXISTS idx_games_status_start ON games(status, scheduled_start);
CREATE INDEX IF NOT EXISTS idx_games_home_team ON games(home_team_id);
CREATE INDEX IF NOT EXISTS idx_games_away_team ON games(away_team_id);
CREATE INDEX IF NOT EXISTS idx_events_game_timestamp ON events(game_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_players_team_active ON players(team_id, is_active);
"""


def init_schema(db_path: str, fresh_start: bool = False) -> None:
    """
    Initialize the database schema.

    Args:
        db_path: Path to the SQLite database file
        fresh_start: If True, drop all tables and start fresh
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    try:
        if fresh_start:
            logger.info("Fresh start: dropping all existing tables")
            tables = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
            for table in tables:
                if table["name"] != "sqlite_sequence":
                    conn.execute(f"DROP TABLE IF EXISTS {table['name']}")
            conn.commit()

        logger.info("Creating tables...")
        conn.executescript(TABLES)
        conn.commit()

        logger.info("Creating indexes...")
        conn.executescript(INDEXES)
        conn.commit()

        logger.info(f"Schema initialized (version {SCHEMA_VERSION})")

    finally:
        conn.close()
