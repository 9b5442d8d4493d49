"""Database models for the watcher service.

Only linked Kalshi accounts are persisted. Watchers live in memory and are
lost on restart.
"""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LinkedAccount(SQLModel, table=True):
    """Kalshi API credentials linked to a user, encrypted at rest."""

    user_id: str = Field(primary_key=True)
    api_key_encrypted: str
    private_key_encrypted: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_active: bool = Field(default=True)
