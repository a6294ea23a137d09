"""
Configuration management for the scorekeeping service.

Uses environment variables with sensible defaults.
"""
import os


class AppConfig:
    """Configuration for the scorekeeping API."""

    # Server
    HOST = os.getenv("APP_HOST", "0.0.0.0")
    PORT = int(os.getenv("APP_PORT", "8000"))

    # Database
    DB_PATH = os.getenv("APP_DB_PATH", "ultiscore.db")

    # Read paging
    EVENTS_DEFAULT_LIMIT = int(os.getenv("EVENTS_DEFAULT_LIMIT", "100"))
    GAMES_DEFAULT_LIMIT = int(os.getenv("GAMES_DEFAULT_LIMIT", "50"))

    # Optimistic concurrency on the live state row
    MAX_WRITE_RETRIES = int(os.getenv("MAX_WRITE_RETRIES", "5"))


def print_config(config_class):
    """Print configuration for debugging."""
    print(f"\n{'='*60}")
    print(f"{config_class.__name__} Configuration:")
    print(f"{'='*60}")
    for attr in dir(config_class):
        if attr.isupper():
            value = getattr(config_class, attr)
            print(f"  {attr:20} = {value}")
    print(f"{'='*60}\n")
