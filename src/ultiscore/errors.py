"""Error taxonomy for the game state engine.

Every error carries a stable ``code`` and the HTTP status the API maps it
to. Messages are user-facing.
"""


class ScoreError(Exception):
    """Base class for engine errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class AuthenticationError(ScoreError):
    """No verified caller identity."""

    code = "not_authenticated"
    status_code = 401


class AuthorizationError(ScoreError):
    """Identity verified but lacking the required capability."""

    code = "not_authorized"
    status_code = 403


class NotFoundError(ScoreError):
    """Referenced game, live state, team, player or user is absent."""

    code = "not_found"
    status_code = 404


class InvalidStateError(ScoreError):
    """Operation attempted against a game in the wrong lifecycle state."""

    code = "invalid_state"
    status_code = 409


class InvalidInputError(ScoreError):
    """Request values that can never be valid for this game."""

    code = "invalid_input"
    status_code = 422


class ConcurrencyError(ScoreError):
    """Live state kept changing underneath us until retries ran out."""

    code = "write_conflict"
    status_code = 409


class StaleStateError(Exception):
    """Conditional live state write lost the race (internal, retried)."""
    pass
