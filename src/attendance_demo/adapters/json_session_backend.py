"""JSON file backend for the anonymous session store."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from attendance_demo.services.session_store import SessionBackend

logger = logging.getLogger(__name__)


@dataclass
class JsonFileSessionBackend(SessionBackend):
    """Durable key-value backend stored as one JSON object on disk."""

    path: Path

    def read(self, key: str) -> str | None:
        """Return the stored text for a key."""
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def write(self, key: str, value: str) -> None:
        """Persist a key synchronously."""
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        """Delete a key if present."""
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)

    def _load(self) -> dict[str, object]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable session file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        tmp_path.replace(self.path)
