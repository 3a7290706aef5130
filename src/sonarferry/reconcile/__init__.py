"""Issue and hotspot reconciliation against the destination."""

from sonarferry.reconcile.matcher import build_index, fingerprint, match_findings
from sonarferry.reconcile.models import HotspotSyncStats, IssueSyncStats, Match, PairOutcome
from sonarferry.reconcile.ops import ReconcileOps
from sonarferry.reconcile.replay import (
    changelog_transition,
    comment_dedupe_key,
    format_comment,
    hotspot_resolution,
    issue_transition,
    transitions_from_changelog,
)

__all__ = [
    "ReconcileOps",
    "HotspotSyncStats",
    "IssueSyncStats",
    "Match",
    "PairOutcome",
    "build_index",
    "fingerprint",
    "match_findings",
    "changelog_transition",
    "comment_dedupe_key",
    "format_comment",
    "hotspot_resolution",
    "issue_transition",
    "transitions_from_changelog",
]
