"""Resumable transfer state.

Document layout (JSON)::

    {
      "lastSync": "2024-05-01T10:00:00+00:00" | null,
      "completedBranches": ["main", "develop"],
      "processedFindingKeys": ["AX1...", "comment:9f2c..."],
      "syncHistory": [{"timestamp": "...", "success": true, "stats": {...}}]
    }

Older files wrote ``processedIssues``; it is read as an alias of
``processedFindingKeys``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from sonarferry.config.constants import MAX_SYNC_HISTORY
from sonarferry.state.storage import StateStorage

log = structlog.get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class TransferState:
    last_sync: str | None = None
    completed_branches: list[str] = field(default_factory=list)
    processed_finding_keys: list[str] = field(default_factory=list)
    sync_history: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransferState:
        processed = data.get("processedFindingKeys")
        if processed is None:
            processed = data.get("processedIssues", [])
        return cls(
            last_sync=data.get("lastSync"),
            completed_branches=list(data.get("completedBranches") or []),
            processed_finding_keys=list(processed or []),
            sync_history=list(data.get("syncHistory") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastSync": self.last_sync,
            "completedBranches": self.completed_branches,
            "processedFindingKeys": self.processed_finding_keys,
            "syncHistory": self.sync_history,
        }


@dataclass(frozen=True, slots=True)
class StateSummary:
    last_sync: str | None
    completed_branches: tuple[str, ...]
    processed_findings: int
    sync_history: int


class StateTracker:
    """In-memory TransferState backed by a StateStorage file."""

    def __init__(self, path: Path, *, clock: Callable[[], str] = _now_iso) -> None:
        self.storage = StateStorage(path)
        self.state = TransferState()
        self._clock = clock
        self._processed: set[str] = set()

    @property
    def path(self) -> Path:
        return self.storage.path

    def initialize(self) -> None:
        """Load the state file; a missing file means empty state."""
        data = self.storage.load()
        self.state = TransferState.from_dict(data) if data else TransferState()
        self._processed = set(self.state.processed_finding_keys)
        log.info(
            "state_loaded" if data else "state_fresh",
            path=str(self.path),
            last_sync=self.state.last_sync,
            completed_branches=len(self.state.completed_branches),
        )

    @property
    def last_sync(self) -> str | None:
        return self.state.last_sync

    def is_branch_completed(self, branch: str) -> bool:
        return branch in self.state.completed_branches

    def mark_branch_completed(self, branch: str) -> None:
        if branch not in self.state.completed_branches:
            self.state.completed_branches.append(branch)
            log.info("branch_marked_completed", branch=branch)

    def is_finding_processed(self, key: str) -> bool:
        return key in self._processed

    def mark_finding_processed(self, key: str) -> None:
        if key not in self._processed:
            self._processed.add(key)
            self.state.processed_finding_keys.append(key)

    def record_transfer(self, *, success: bool, stats: dict[str, Any] | None = None) -> None:
        """Stamp lastSync, append a history entry (last MAX_SYNC_HISTORY kept) and save."""
        now = self._clock()
        self.state.last_sync = now
        entry: dict[str, Any] = {"timestamp": now, "success": success}
        if stats is not None:
            entry["stats"] = stats
        self.state.sync_history.append(entry)
        self.state.sync_history = self.state.sync_history[-MAX_SYNC_HISTORY:]
        self.save()

    def save(self) -> None:
        self.storage.save(self.state.to_dict())

    def reset(self) -> None:
        self.state = TransferState()
        self._processed = set()
        self.storage.clear()

    def summary(self) -> StateSummary:
        return StateSummary(
            last_sync=self.state.last_sync,
            completed_branches=tuple(self.state.completed_branches),
            processed_findings=len(self.state.processed_finding_keys),
            sync_history=len(self.state.sync_history),
        )
