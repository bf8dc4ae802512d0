"""Domain models for anonymous trial sessions."""

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class AnonymousSession:
    """A time-boxed trial identity persisted on one device."""

    session_id: str
    created_at: datetime
    enrolled_at: datetime | None
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return True once the fixed expiry horizon has passed."""
        return now >= self.expires_at


@dataclass(frozen=True)
class TimeRemaining:
    """Whole days plus whole hours left before a session expires."""

    days: int
    hours: int


class StoredSession(BaseModel):
    """Persisted session record layout."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    enrolled_at: datetime | None = Field(default=None, alias="enrolledAt")
    expires_at: datetime = Field(alias="expiresAt")
    created_at: datetime = Field(alias="createdAt")

    @field_validator("enrolled_at", "expires_at", "created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def from_session(cls, session: AnonymousSession) -> "StoredSession":
        return cls(
            session_id=session.session_id,
            enrolled_at=session.enrolled_at,
            expires_at=session.expires_at,
            created_at=session.created_at,
        )

    def to_session(self) -> AnonymousSession:
        return AnonymousSession(
            session_id=self.session_id,
            created_at=self.created_at,
            enrolled_at=self.enrolled_at,
            expires_at=self.expires_at,
        )
