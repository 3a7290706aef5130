"""Transfer orchestration: extract, build, encode and upload each branch.

Branches run sequentially, main first. A main-branch failure aborts the
transfer; any other branch failure is logged and recorded, and the run
continues. State problems never abort a run; they become warnings.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from sonarferry.core.errors import StateError
from sonarferry.destination.client import DestinationClient
from sonarferry.destination.uploader import ReportUploader
from sonarferry.report.builder import BuildTarget, ReportBuilder
from sonarferry.report.encoder import ReportEncoder
from sonarferry.source.extractor import SnapshotExtractor
from sonarferry.source.models import Branch
from sonarferry.state.tracker import StateTracker
from sonarferry.transfer.models import (
    BranchFailure,
    BranchStats,
    TransferOptions,
    TransferResult,
    TransferStats,
    lines_of_code_from,
)

log = structlog.get_logger(__name__)


def pick_main(branches: list[Branch]) -> Branch:
    """The branch flagged main, else the first listed."""
    for branch in branches:
        if branch.is_main:
            return branch
    return branches[0]


class TransferOrchestrator:
    """Runs one project's report transfer."""

    def __init__(
        self,
        extractor: SnapshotExtractor,
        destination: DestinationClient,
        uploader: ReportUploader,
        options: TransferOptions,
        *,
        state: StateTracker | None = None,
        encoder: ReportEncoder | None = None,
    ) -> None:
        self._extractor = extractor
        self._destination = destination
        self._uploader = uploader
        self._options = options
        self._state = state if options.incremental else None
        self._encoder = encoder or ReportEncoder()
        self._warnings: list[str] = []

    def _warn_state(self, action: str, error: StateError) -> None:
        log.warning("state_unavailable", action=action, error=error.message)
        self._warnings.append(f"State {action} failed, resumability is compromised: {error.message}")

    def _initialize_state(self) -> None:
        if self._state is None:
            return
        try:
            self._state.initialize()
        except StateError as e:
            # Never overwrite a state file we could not read
            self._warn_state("load", e)
            self._state = None

    def _mark_completed(self, branch: Branch) -> None:
        if self._state is None:
            return
        self._state.mark_branch_completed(branch.name)
        try:
            self._state.save()
        except StateError as e:
            self._warn_state("save", e)

    def _already_completed(self, branch: Branch) -> bool:
        return self._state is not None and self._state.is_branch_completed(branch.name)

    async def _transfer_branch(self, branch: Branch, target: BuildTarget, profiles: list[dict[str, Any]]) -> BranchStats:
        snapshot = await self._extractor.extract_branch(branch)
        report = ReportBuilder(snapshot, target, profiles).build()
        # protobuf encoding and zipping is CPU-bound
        bundle = await asyncio.to_thread(self._encoder.bundle, report)

        if self._options.wait:
            task = await self._uploader.upload_and_wait(bundle, target.project_version, self._options.max_wait_sec)
        else:
            task = await self._uploader.upload(bundle, target.project_version)
        log.info("branch_transferred", branch=branch.name, task_id=task.id, issues=len(snapshot.issues))

        return BranchStats(
            issues=len(snapshot.issues),
            components=len(snapshot.components),
            sources=len(snapshot.sources),
            lines_of_code=lines_of_code_from(snapshot.measures),
        )

    async def run(self) -> TransferResult:
        project_key = self._extractor.project_key
        destination_key = self._destination.project_key
        branch_filter = self._options.branch_filter

        branches = await self._extractor.list_branches()
        main = pick_main(branches)
        others = [b for b in branches if b.name != main.name]

        if not branch_filter.allows_main(main):
            log.warning("project_skipped_main_not_included", project=project_key, main=main.name)
            return TransferResult(
                project_key=project_key,
                destination_project_key=destination_key,
                skipped_reason=f"main branch '{main.name}' is not in include_branches",
            )

        self._initialize_state()
        await self._destination.ensure_project(await self._extractor.project_name())
        profiles = await self._destination.get_quality_profiles()
        destination_main = await self._destination.get_main_branch_name()

        stats = TransferStats()
        failures: list[BranchFailure] = []

        if self._already_completed(main):
            log.info("branch_skipped", branch=main.name, reason="completed")
        else:
            target = BuildTarget(
                organization=self._destination.organization,
                project_key=destination_key,
                branch_name=destination_main,
                reference_branch_name=destination_main,
            )
            log.info("branch_transfer_started", branch=main.name, main=True)
            stats = stats.fold(main.name, await self._transfer_branch(main, target, profiles))
            self._mark_completed(main)

        for branch in others:
            reason = branch_filter.skip_reason(branch)
            if reason is None and self._already_completed(branch):
                reason = "completed"
            if reason is not None:
                log.info("branch_skipped", branch=branch.name, reason=reason)
                continue

            target = BuildTarget(
                organization=self._destination.organization,
                project_key=destination_key,
                branch_name=branch.name,
                reference_branch_name=destination_main,
            )
            log.info("branch_transfer_started", branch=branch.name, main=False)
            try:
                branch_stats = await self._transfer_branch(branch, target, profiles)
            except Exception as e:
                log.error("branch_transfer_failed", branch=branch.name, error=str(e))
                failures.append(BranchFailure(branch=branch.name, error=str(e)))
                continue
            stats = stats.fold(branch.name, branch_stats)
            self._mark_completed(branch)

        if self._state is not None:
            try:
                self._state.record_transfer(success=not failures, stats=stats.to_dict())
            except StateError as e:
                self._warn_state("save", e)

        log.info(
            "transfer_completed",
            project=project_key,
            branches=list(stats.branches_transferred),
            failed=[f.branch for f in failures],
        )
        return TransferResult(
            project_key=project_key,
            destination_project_key=destination_key,
            stats=stats,
            main_ok=True,
            failed_branches=tuple(failures),
            warnings=tuple(self._warnings),
        )
