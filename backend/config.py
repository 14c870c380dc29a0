from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Homeschool SRS"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'homeschool_srs.db'}"
    queue_due_limit: int = 15
    queue_new_limit: int = 5
    queue_due_run: int = 3  # due cards per interleave round
    queue_new_run: int = 1  # new cards per interleave round
    queue_max_size: int = 20
    grade_max_attempts: int = 3
    debug: bool = False

    model_config = {"env_prefix": "HOMESCHOOL_SRS_", "env_file": ".env"}


settings = Settings()
