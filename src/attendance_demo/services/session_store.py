"""Anonymous trial session store with a fixed expiry window."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import uuid4

from pydantic import ValidationError

from attendance_demo.domain.sessions import (
    AnonymousSession,
    StoredSession,
    TimeRemaining,
)

SESSION_KEY = "attendance_demo_session"
DEFAULT_EXPIRY_DAYS = 7

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    """Key-value storage holding serialized session records."""

    def read(self, key: str) -> str | None:
        """Return the stored text for a key, if present."""

    def write(self, key: str, value: str) -> None:
        """Persist text under a key."""

    def remove(self, key: str) -> None:
        """Delete a key if present."""


@dataclass
class InMemorySessionBackend(SessionBackend):
    """Process-local backend for tests and ephemeral runs."""

    values: dict[str, str] = field(default_factory=dict)

    def read(self, key: str) -> str | None:
        return self.values.get(key)

    def write(self, key: str, value: str) -> None:
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionStore:
    """Reads and writes the single anonymous session record of this device."""

    backend: SessionBackend
    expiry_days: int = DEFAULT_EXPIRY_DAYS
    clock: Callable[[], datetime] = _utc_now
    key: str = SESSION_KEY

    def get(self) -> AnonymousSession | None:
        """Return the stored session unless it is missing, corrupt or expired."""
        raw = self.backend.read(self.key)
        if not raw:
            return None
        try:
            session = StoredSession.model_validate_json(raw).to_session()
        except ValidationError:
            logger.warning("Discarding unreadable session record")
            self.backend.remove(self.key)
            return None
        if session.is_expired(self.clock()):
            logger.info("Session %s expired", session.session_id)
            self.backend.remove(self.key)
            return None
        return session

    def get_or_create(self) -> AnonymousSession:
        """Return the live session, creating a fresh one when none exists."""
        existing = self.get()
        if existing is not None:
            return existing
        now = self.clock()
        session = AnonymousSession(
            session_id=f"demo-{uuid4()}",
            created_at=now,
            enrolled_at=None,
            expires_at=now + timedelta(days=self.expiry_days),
        )
        self._save(session)
        logger.info("Created session %s", session.session_id)
        return session

    def mark_enrolled(self) -> None:
        """Record the enrollment time; does nothing without a live session."""
        session = self.get()
        if session is None:
            return
        self._save(replace(session, enrolled_at=self.clock()))

    def is_enrolled(self) -> bool:
        session = self.get()
        return session is not None and session.enrolled_at is not None

    def time_remaining(self) -> TimeRemaining | None:
        """Return days and hours left for an enrolled session."""
        session = self.get()
        if session is None or session.enrolled_at is None:
            return None
        diff = session.expires_at - self.clock()
        if diff <= timedelta(0):
            return None
        return TimeRemaining(
            days=diff.days,
            hours=diff.seconds // 3600,
        )

    def reset(self) -> None:
        """Forget the current session."""
        self.backend.remove(self.key)

    def _save(self, session: AnonymousSession) -> None:
        record = StoredSession.from_session(session)
        self.backend.write(self.key, record.model_dump_json(by_alias=True))
