"""JSON file session store."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from photo_share.services.auth import SessionStore

_logger = logging.getLogger(__name__)


def default_session_path() -> Path:
    """Return the per-user session file location."""
    return Path.home() / ".config" / "photo_share" / "session.json"


@dataclass
class JsonFileSessionStore(SessionStore):
    """Stores the session payload as JSON on disk."""

    path: Path

    def read(self) -> dict[str, object] | None:
        """Return the stored payload, or None when absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _logger.warning("Could not read session file", extra={"path": str(self.path)})
            return None
        if not isinstance(payload, dict):
            return None
        return payload

    def write(self, payload: dict[str, object]) -> None:
        """Write the payload atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        tmp_path.replace(self.path)

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)
