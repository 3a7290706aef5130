"""JSON file persistence for transfer state."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

from sonarferry.core.errors import StateError

log = structlog.get_logger(__name__)


class StateStorage:
    """Reads and atomically writes one JSON state document."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any] | None:
        """Return the stored document, or None when the file does not exist."""
        if not self.path.exists():
            log.debug("state_file_missing", path=str(self.path))
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StateError.invalid_json(str(self.path), str(e)) from e
        except OSError as e:
            raise StateError.load_failed(str(self.path), str(e)) from e
        if not isinstance(data, dict):
            raise StateError.invalid_json(str(self.path), "top-level value must be an object")
        return data

    def save(self, data: dict[str, Any]) -> None:
        """Write via a temp file in the same directory, then rename over the target."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StateError.save_failed(str(self.path), str(e)) from e
        log.debug("state_saved", path=str(self.path))

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StateError.clear_failed(str(self.path), str(e)) from e
        log.info("state_cleared", path=str(self.path))
