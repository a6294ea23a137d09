"""
Caller identity and capability checks.

Tokens are resolved to a user record by ``auth_subject``. The engine only
needs two checks: "is someone signed in" and "may they manage games/teams".
"""
import logging
import sqlite3
import uuid
from typing import Optional

from ultiscore.db import get_db
from ultiscore.errors import AuthenticationError, AuthorizationError
from ultiscore.models import CreateUserRequest, User
from ultiscore.store import now_ms, row_to_user

logger = logging.getLogger("ultiscore.auth")


def resolve_user(db_path: str, token: Optional[str]) -> Optional[User]:
    """Look up the user for a bearer token, or None if it is unknown."""
    if not token:
        return None
    conn = get_db(db_path)
    try:
        row = conn.execute(
            "SELECT * FROM users WHERE auth_subject = ?", (token,)
        ).fetchone()
    finally:
        conn.close()
    return row_to_user(row) if row else None


def require_user(user: Optional[User]) -> User:
    if user is None:
        raise AuthenticationError("Not authenticated")
    return user


def require_manage_games(user: Optional[User], action: str = "manage games") -> User:
    user = require_user(user)
    if not user.can_manage_games:
        raise AuthorizationError(f"Not authorized to {action}")
    return user


def require_manage_teams(user: Optional[User], action: str = "manage teams") -> User:
    user = require_user(user)
    if not user.can_manage_teams:
        raise AuthorizationError(f"Not authorized to {action}")
    return user


def create_user(db_path: str, request: CreateUserRequest, caller: Optional[User] = None) -> str:
    """
    Register a user, typically on first sign-in.

    Idempotent on ``auth_subject``: an existing user is returned unchanged.
    New users default to the viewer role; any other role needs an admin
    caller. Admins get both management capabilities.

    Returns:
        The user_id
    """
    role = request.role or "viewer"
    if role != "viewer" and (caller is None or caller.role != "admin"):
        raise AuthorizationError(f"Not authorized to create {role} users")

    conn = get_db(db_path)
    try:
        existing = conn.execute(
            "SELECT user_id FROM users WHERE auth_subject = ?", (request.auth_subject,)
        ).fetchone()
        if existing:
            return existing["user_id"]

        user_id = uuid.uuid4().hex
        try:
            conn.execute("""
                INSERT INTO users (
                    user_id, auth_subject, email, name, role,
                    can_manage_games, can_manage_teams, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                request.auth_subject,
                request.email,
                request.name,
                role,
                1 if role == "admin" else 0,
                1 if role == "admin" else 0,
                now_ms(),
            ))
        except sqlite3.IntegrityError:
            # Lost a race with a concurrent first sign-in
            row = conn.execute(
                "SELECT user_id FROM users WHERE auth_subject = ?", (request.auth_subject,)
            ).fetchone()
            return row["user_id"]
    finally:
        conn.close()

    logger.info(f"Created {role} user {request.name} ({user_id})")
    return user_id
