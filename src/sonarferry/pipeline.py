"""Project migration pipeline: report transfer followed by metadata sync.

Each entry point opens its own source and destination clients and closes
them on exit. Reconciliation steps are recorded as step results; one
failing step never prevents the next from running.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx
import structlog

from sonarferry.config.loader import resolve_state_file
from sonarferry.config.models import SonarFerryConfig
from sonarferry.core.errors import StateError
from sonarferry.core.logging import clear_run_id, set_run_id
from sonarferry.destination.client import DestinationClient
from sonarferry.destination.uploader import ReportUploader
from sonarferry.reconcile.models import HotspotSyncStats, IssueSyncStats
from sonarferry.reconcile.ops import ReconcileOps
from sonarferry.source.client import SourceClient
from sonarferry.source.extractor import SnapshotExtractor
from sonarferry.state.tracker import StateTracker
from sonarferry.transfer.models import TransferOptions, TransferResult
from sonarferry.transfer.ops import TransferOrchestrator

log = structlog.get_logger(__name__)

StepStatus = Literal["success", "failed", "skipped"]


@dataclass(frozen=True, slots=True)
class StepResult:
    name: str
    status: StepStatus
    error: str | None = None
    stats: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MigrationResult:
    """Outcome of one project's migration."""

    project_key: str
    transfer: TransferResult | None = None
    issue_sync: IssueSyncStats | None = None
    hotspot_sync: HotspotSyncStats | None = None
    steps: tuple[StepResult, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        if self.transfer is not None and self.transfer.failed_branches:
            return False
        return all(step.status != "failed" for step in self.steps)


@dataclass(slots=True)
class _Session:
    source: SourceClient
    destination: DestinationClient
    extractor: SnapshotExtractor


@asynccontextmanager
async def _open_session(
    config: SonarFerryConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[_Session]:
    source = SourceClient(config.source, config.timeouts, transport=transport)
    destination = DestinationClient(
        config.destination,
        config.destination_project_key,
        config.rate_limit,
        config.timeouts,
        transport=transport,
    )
    async with source, destination:
        extractor = SnapshotExtractor(
            source,
            batch_size=config.transfer.batch_size,
            performance=config.performance,
        )
        yield _Session(source=source, destination=destination, extractor=extractor)


def _open_state(config: SonarFerryConfig, warnings: list[str]) -> StateTracker | None:
    """Loaded tracker for comment dedupe, or None when disabled or unreadable.

    Full mode never touches the state file, so dedupe is off there.
    """
    if not config.sync.dedupe_comments or config.transfer.mode != "incremental":
        return None
    tracker = StateTracker(resolve_state_file(config))
    try:
        tracker.initialize()
    except StateError as e:
        log.warning("state_unavailable", action="load", error=e.message)
        warnings.append(f"State load failed, comments may be posted twice: {e.message}")
        return None
    return tracker


async def _run_step(name: str, call: Callable[[], Awaitable[Any]]) -> tuple[StepResult, Any]:
    try:
        value = await call()
    except Exception as e:
        log.error("step_failed", step=name, error=str(e))
        return StepResult(name=name, status="failed", error=str(e)), None
    stats = value.to_dict() if hasattr(value, "to_dict") else {}
    return StepResult(name=name, status="success", stats=stats), value


async def _transfer(session: _Session, config: SonarFerryConfig, *, wait: bool) -> TransferResult:
    options = TransferOptions.from_config(config, wait=wait)
    state = StateTracker(resolve_state_file(config)) if options.incremental else None
    uploader = ReportUploader(session.destination, poll_interval_sec=config.timeouts.analysis_poll_sec)
    orchestrator = TransferOrchestrator(session.extractor, session.destination, uploader, options, state=state)
    return await orchestrator.run()


async def _sync(session: _Session, config: SonarFerryConfig, warnings: list[str]) -> MigrationResult:
    ops = ReconcileOps(
        session.destination,
        source=session.source,
        state=_open_state(config, warnings),
        sync=config.sync,
        performance=config.performance,
    )
    steps: list[StepResult] = []
    issue_stats: IssueSyncStats | None = None
    hotspot_stats: HotspotSyncStats | None = None

    if config.sync.skip_issue_sync:
        steps.append(StepResult(name="issue_sync", status="skipped"))
    else:
        step, issue_stats = await _run_step(
            "issue_sync", lambda: _sync_issues(ops, session.extractor)
        )
        steps.append(step)

    if config.sync.skip_hotspot_sync:
        steps.append(StepResult(name="hotspot_sync", status="skipped"))
    else:
        step, hotspot_stats = await _run_step(
            "hotspot_sync", lambda: _sync_hotspots(ops, session.extractor)
        )
        steps.append(step)

    return MigrationResult(
        project_key=config.source.project_key,
        issue_sync=issue_stats,
        hotspot_sync=hotspot_stats,
        steps=tuple(steps),
        warnings=tuple(warnings),
    )


async def _sync_issues(ops: ReconcileOps, extractor: SnapshotExtractor) -> IssueSyncStats:
    return await ops.sync_issues(await extractor.extract_issues())


async def _sync_hotspots(ops: ReconcileOps, extractor: SnapshotExtractor) -> HotspotSyncStats:
    return await ops.sync_hotspots(await extractor.extract_hotspot_details())


async def run_transfer(
    config: SonarFerryConfig,
    *,
    wait: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TransferResult:
    """Transfer report bundles only."""
    set_run_id()
    try:
        async with _open_session(config, transport) as session:
            return await _transfer(session, config, wait=wait)
    finally:
        clear_run_id()


async def sync_metadata(
    config: SonarFerryConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MigrationResult:
    """Reconcile issues and hotspots for a project that was already transferred."""
    set_run_id()
    try:
        async with _open_session(config, transport) as session:
            return await _sync(session, config, [])
    finally:
        clear_run_id()


async def migrate_project(
    config: SonarFerryConfig,
    *,
    wait: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MigrationResult:
    """Transfer, then sync metadata when the main branch made it across.

    Transfer failures propagate. Sync is skipped for a project whose main
    branch was filtered out.
    """
    run_id = set_run_id()
    log.info("migration_started", project=config.source.project_key, run_id=run_id)
    try:
        async with _open_session(config, transport) as session:
            transfer = await _transfer(session, config, wait=wait)
            transfer_step = StepResult(name="transfer", status="success", stats=transfer.stats.to_dict())

            if transfer.skipped or not transfer.main_ok:
                log.info("metadata_sync_skipped", project=transfer.project_key, reason=transfer.skipped_reason)
                return MigrationResult(
                    project_key=transfer.project_key,
                    transfer=transfer,
                    steps=(
                        StepResult(name="transfer", status="skipped", error=transfer.skipped_reason),
                        StepResult(name="issue_sync", status="skipped"),
                        StepResult(name="hotspot_sync", status="skipped"),
                    ),
                    warnings=transfer.warnings,
                )

            synced = await _sync(session, config, list(transfer.warnings))
    finally:
        clear_run_id()

    result = MigrationResult(
        project_key=transfer.project_key,
        transfer=transfer,
        issue_sync=synced.issue_sync,
        hotspot_sync=synced.hotspot_sync,
        steps=(transfer_step, *synced.steps),
        warnings=synced.warnings,
    )
    log.info("migration_completed", project=result.project_key, success=result.success)
    return result
