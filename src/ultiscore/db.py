"""Database utilities for ultiscore."""

import logging
import sqlite3
from contextlib import contextmanager

logger = logging.getLogger("ultiscore.db")


def get_db(db_path: str):
    """Get database connection with Row factory and foreign keys enforced.

    The connection is in autocommit mode; writes go through ``transaction``.
    """
    try:
        conn = sqlite3.connect(db_path, timeout=10.0, isolation_level=None)
    except sqlite3.OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection):
    """Run a block inside one write transaction; roll back on any error."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def init_db(db_path: str):
    """Initialize database with required tables."""
    from ultiscore.schema import init_schema

    logger.info("Initializing database...")
    init_schema(db_path)

    db = get_db(db_path)
    try:
        count = db.execute("SELECT COUNT(*) FROM games").fetchone()[0]
    finally:
        db.close()
    if count == 0:
        logger.info("New database - no games yet")
    else:
        logger.info(f"Database initialized with {count} existing games")
