"""Reconciliation models - fingerprints, matched pairs and sync stats."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from sonarferry.source.models import Finding

Fingerprint = tuple[str, str, int]


@dataclass(frozen=True, slots=True)
class Match:
    """A source finding paired with the destination finding it was matched to."""

    source: Finding
    destination: Finding


@dataclass(frozen=True, slots=True)
class PairOutcome:
    """What happened to one matched pair."""

    transitioned: bool = False
    assigned: bool = False
    commented: int = 0
    tagged: bool = False
    failed: bool = False


@dataclass(frozen=True, slots=True)
class IssueSyncStats:
    matched: int = 0
    transitioned: int = 0
    assigned: int = 0
    commented: int = 0
    tagged: int = 0
    failed: int = 0

    def fold(self, outcome: PairOutcome) -> IssueSyncStats:
        return replace(
            self,
            transitioned=self.transitioned + outcome.transitioned,
            assigned=self.assigned + outcome.assigned,
            commented=self.commented + outcome.commented,
            tagged=self.tagged + outcome.tagged,
            failed=self.failed + outcome.failed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class HotspotSyncStats:
    matched: int = 0
    status_changed: int = 0
    commented: int = 0
    failed: int = 0

    def fold(self, outcome: PairOutcome) -> HotspotSyncStats:
        return replace(
            self,
            status_changed=self.status_changed + outcome.transitioned,
            commented=self.commented + outcome.commented,
            failed=self.failed + outcome.failed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "statusChanged": self.status_changed,
            "commented": self.commented,
            "failed": self.failed,
        }
