"""Reconciliation operations - replay source triage onto destination findings.

Every matched pair runs through the same four independent operations
(transition, assign, comment, tag for issues; status and comment for
hotspots). One operation failing is logged against the finding key and
does not stop the others.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

import structlog

from sonarferry.config.models import PerformanceConfig, SyncConfig
from sonarferry.core.concurrency import map_concurrent, progress_logger
from sonarferry.core.errors import StateError
from sonarferry.destination.client import DestinationClient
from sonarferry.reconcile.matcher import match_findings
from sonarferry.reconcile.models import HotspotSyncStats, IssueSyncStats, Match, PairOutcome
from sonarferry.reconcile.replay import (
    comment_dedupe_key,
    format_comment,
    hotspot_resolution,
    issue_transition,
    transitions_from_changelog,
)
from sonarferry.source.client import SourceClient
from sonarferry.source.models import Finding
from sonarferry.state.tracker import StateTracker

log = structlog.get_logger(__name__)


async def _attempt(op: str, finding_key: str, call: Callable[[], Awaitable[None]]) -> bool:
    """Run one mutation; False (logged) when it raised."""
    try:
        await call()
    except Exception as e:
        log.warning("sync_operation_failed", op=op, finding=finding_key, error=str(e))
        return False
    return True


class ReconcileOps:
    """Issue and hotspot sync for one destination project."""

    def __init__(
        self,
        destination: DestinationClient,
        *,
        source: SourceClient | None = None,
        state: StateTracker | None = None,
        sync: SyncConfig | None = None,
        performance: PerformanceConfig | None = None,
    ) -> None:
        self._destination = destination
        self._source = source
        self._state = state
        self._sync = sync or SyncConfig()
        self._performance = performance or PerformanceConfig()

    @property
    def _dedupe(self) -> bool:
        return self._sync.dedupe_comments and self._state is not None

    # Shared steps

    async def _replay_comments(
        self,
        source: Finding,
        destination: Finding,
        post: Callable[[str, str], Awaitable[None]],
    ) -> tuple[int, bool]:
        """Post each source comment once. Returns (posted, any_failed)."""
        posted = 0
        failed = False
        for comment in source.comments:
            key = comment_dedupe_key(source.key, comment)
            if self._dedupe and self._state is not None and self._state.is_finding_processed(key):
                log.debug("comment_already_migrated", finding=destination.key)
                continue
            text = format_comment(comment)
            if await _attempt("comment", destination.key, lambda t=text: post(destination.key, t)):
                posted += 1
                if self._dedupe and self._state is not None:
                    self._state.mark_finding_processed(key)
            else:
                failed = True
        return posted, failed

    def _persist_state(self) -> None:
        if not self._dedupe or self._state is None:
            return
        try:
            self._state.save()
        except StateError as e:
            log.warning("comment_dedupe_state_not_saved", error=e.message)

    # Issues

    async def _issue_transitions(self, source: Finding) -> list[str]:
        fallback = issue_transition(source.status, source.resolution)
        if not (self._sync.replay_changelog and self._source is not None):
            return [fallback] if fallback else []
        try:
            replayed = transitions_from_changelog(await self._source.get_issue_changelog(source.key))
        except Exception as e:
            log.debug("changelog_unavailable", finding=source.key, error=str(e))
            replayed = []
        if replayed:
            return replayed
        return [fallback] if fallback else []

    async def _sync_issue(self, match: Match) -> PairOutcome:
        source, destination = match.source, match.destination
        dest = self._destination
        transitioned = assigned = tagged = False
        failed = False

        if source.status != destination.status:
            for transition in await self._issue_transitions(source):
                ok = await _attempt(
                    f"transition:{transition}",
                    destination.key,
                    lambda t=transition: dest.transition_issue(destination.key, t),
                )
                transitioned = transitioned or ok
                failed = failed or not ok

        if source.assignee and source.assignee != destination.assignee:
            assignee = source.assignee
            assigned = await _attempt("assign", destination.key, lambda: dest.assign_issue(destination.key, assignee))
            failed = failed or not assigned

        commented, comment_failed = await self._replay_comments(source, destination, dest.add_issue_comment)
        failed = failed or comment_failed

        if source.tags:
            tags = list(source.tags)
            tagged = await _attempt("tags", destination.key, lambda: dest.set_issue_tags(destination.key, tags))
            failed = failed or not tagged

        return PairOutcome(
            transitioned=transitioned,
            assigned=assigned,
            commented=commented,
            tagged=tagged,
            failed=failed,
        )

    async def sync_issues(self, source_issues: Sequence[Finding]) -> IssueSyncStats:
        destination_issues = [Finding.from_issue(i) for i in await self._destination.search_issues()]
        log.info("issue_sync_started", source=len(source_issues), destination=len(destination_issues))

        matches = match_findings(source_issues, destination_issues)
        stats = IssueSyncStats(matched=len(matches))
        outcomes = await map_concurrent(
            matches,
            self._sync_issue,
            concurrency=self._performance.issue_sync,
            on_progress=progress_logger("issue_sync", len(matches)),
        )
        for match, outcome in zip(matches, outcomes, strict=True):
            if outcome.ok and outcome.value is not None:
                stats = stats.fold(outcome.value)
            else:
                log.error("issue_sync_failed", finding=match.source.key, error=str(outcome.error))
                stats = stats.fold(PairOutcome(failed=True))

        self._persist_state()
        log.info("issue_sync_completed", **stats.to_dict())
        return stats

    # Hotspots

    async def _sync_hotspot(self, match: Match) -> PairOutcome:
        source, destination = match.source, match.destination
        dest = self._destination
        changed = False
        failed = False

        resolution = hotspot_resolution(source, destination)
        if resolution is not None:
            changed = await _attempt(
                "change_status",
                destination.key,
                lambda: dest.change_hotspot_status(destination.key, "REVIEWED", resolution),
            )
            failed = not changed

        commented, comment_failed = await self._replay_comments(source, destination, dest.add_hotspot_comment)
        return PairOutcome(transitioned=changed, commented=commented, failed=failed or comment_failed)

    async def sync_hotspots(self, source_hotspots: Sequence[Finding]) -> HotspotSyncStats:
        destination_hotspots = [Finding.from_hotspot(h) for h in await self._destination.search_hotspots()]
        log.info("hotspot_sync_started", source=len(source_hotspots), destination=len(destination_hotspots))

        matches = match_findings(source_hotspots, destination_hotspots)
        stats = HotspotSyncStats(matched=len(matches))
        outcomes = await map_concurrent(
            matches,
            self._sync_hotspot,
            concurrency=self._performance.hotspot_sync,
            on_progress=progress_logger("hotspot_sync", len(matches)),
        )
        for match, outcome in zip(matches, outcomes, strict=True):
            if outcome.ok and outcome.value is not None:
                stats = stats.fold(outcome.value)
            else:
                log.error("hotspot_sync_failed", finding=match.source.key, error=str(outcome.error))
                stats = stats.fold(PairOutcome(failed=True))

        self._persist_state()
        log.info("hotspot_sync_completed", **stats.to_dict())
        return stats
