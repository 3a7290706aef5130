"""Per-branch snapshot extraction from the source server.

Project-level data that does not vary by branch (project name, metric
definitions, active rules) is read once per extractor and reused.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from sonarferry.config.constants import COMMON_METRICS
from sonarferry.config.models import PerformanceConfig
from sonarferry.core.concurrency import map_concurrent, progress_logger
from sonarferry.core.errors import TransferError
from sonarferry.source.client import SourceClient
from sonarferry.source.models import (
    ActiveRuleInfo,
    Branch,
    ComponentNode,
    Finding,
    Measure,
    Snapshot,
    SourceFile,
    epoch_ms,
)

log = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _active_rule(rule: dict[str, Any], profile: dict[str, Any]) -> ActiveRuleInfo:
    key = str(rule.get("key", ""))
    repository = str(rule.get("repo") or rule.get("repository") or key.partition(":")[0] or "unknown")
    params = tuple(
        sorted(
            (str(p.get("key", "")), str(p.get("defaultValue") or p.get("value") or ""))
            for p in rule.get("params") or ()
        )
    )
    return ActiveRuleInfo(
        repository=repository,
        key=key.rsplit(":", 1)[-1],
        severity=rule.get("severity"),
        profile_key=str(profile.get("key", "")),
        language=str(profile.get("language", "")).lower(),
        params=params,
        created_at=epoch_ms(rule.get("createdAt")),
        updated_at=epoch_ms(rule.get("updatedAt")),
    )


class SnapshotExtractor:
    """Produces immutable per-branch Snapshots from a SourceClient."""

    def __init__(
        self,
        client: SourceClient,
        *,
        batch_size: int = 100,
        performance: PerformanceConfig | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        self._client = client
        self._batch_size = max(1, batch_size)
        self._performance = performance or PerformanceConfig()
        self._clock = clock
        self._project: dict[str, Any] | None = None
        self._metric_keys: list[str] | None = None
        self._active_rules: tuple[ActiveRuleInfo, ...] | None = None

    @property
    def project_key(self) -> str:
        return self._client.project_key

    async def list_branches(self) -> list[Branch]:
        """Branches in source listing order. Raises when the project has none."""
        branches = [Branch.from_api(b) for b in await self._client.get_branches()]
        if not branches:
            raise TransferError.no_branches(self.project_key)
        log.info("branches_listed", project=self.project_key, count=len(branches))
        return branches

    async def _project_info(self) -> dict[str, Any]:
        if self._project is None:
            self._project = await self._client.get_project()
        return self._project

    async def project_name(self) -> str:
        project = await self._project_info()
        return str(project.get("name") or self.project_key)

    async def _metric_keys_for_project(self) -> list[str]:
        if self._metric_keys is None:
            available = {m.get("key") for m in await self._client.get_metrics()}
            self._metric_keys = [k for k in COMMON_METRICS if k in available]
            log.debug("metrics_selected", count=len(self._metric_keys))
        return self._metric_keys

    async def _project_active_rules(self, languages: set[str]) -> tuple[ActiveRuleInfo, ...]:
        if self._active_rules is not None:
            return self._active_rules

        profiles = await self._client.get_quality_profiles()
        seen: set[tuple[str, str]] = set()
        rules: list[ActiveRuleInfo] = []
        for profile in profiles:
            language = str(profile.get("language", "")).lower()
            if languages and language not in languages:
                continue
            for raw in await self._client.get_active_rules(str(profile.get("key", ""))):
                rule = _active_rule(raw, profile)
                if (rule.repository, rule.key) in seen:
                    continue
                seen.add((rule.repository, rule.key))
                rules.append(rule)

        log.info("active_rules_extracted", profiles=len(profiles), rules=len(rules))
        self._active_rules = tuple(rules)
        return self._active_rules

    async def _fetch_sources(self, branch: Branch, files: list[dict[str, Any]]) -> tuple[list[SourceFile], list[str]]:
        """Fetch raw source text in batches; failures are logged and skipped."""
        sources: list[SourceFile] = []
        failed: list[str] = []
        on_progress = progress_logger(f"sources[{branch.name}]", len(files))
        done = 0

        async def fetch(file: dict[str, Any]) -> SourceFile:
            content = await self._client.get_source_code(file["key"], branch.name)
            return SourceFile(key=file["key"], content=content, language=str(file.get("language") or ""))

        for start in range(0, len(files), self._batch_size):
            batch = files[start : start + self._batch_size]
            outcomes = await map_concurrent(batch, fetch, concurrency=self._performance.source_extraction)
            for file, outcome in zip(batch, outcomes, strict=True):
                if outcome.ok and outcome.value is not None:
                    sources.append(outcome.value)
                else:
                    failed.append(file["key"])
                    log.warning("source_fetch_failed", branch=branch.name, file=file["key"], error=str(outcome.error))
            done += len(batch)
            on_progress(done, len(files))

        return sources, failed

    async def extract_branch(self, branch: Branch) -> Snapshot:
        """Extract one branch. Any API error propagates to the caller."""
        log.info("branch_extraction_started", branch=branch.name)
        metric_keys = await self._metric_keys_for_project()

        components = tuple(
            ComponentNode.from_api(c) for c in await self._client.get_component_tree(branch.name, metric_keys)
        )
        files = await self._client.get_source_files(branch.name)
        languages = {str(f.get("language", "")).lower() for f in files if f.get("language")}
        active_rules = await self._project_active_rules(languages)

        issues = tuple(Finding.from_issue(i) for i in await self._client.get_issues(branch.name))
        hotspots = tuple(Finding.from_hotspot(h) for h in await self._client.get_hotspots(branch.name))
        measures_body = await self._client.get_measures(branch.name, metric_keys)
        measures = tuple(Measure.from_api(m) for m in measures_body.get("measures") or ())
        sources, failed = await self._fetch_sources(branch, files)
        revision = await self._client.get_latest_analysis_revision(branch.name)

        snapshot = Snapshot(
            project_key=self.project_key,
            project_name=await self.project_name(),
            branch=branch,
            analysis_date=self._clock(),
            components=components,
            sources=tuple(sources),
            issues=issues,
            hotspots=hotspots,
            measures=measures,
            active_rules=active_rules,
            revision=revision,
            failed_sources=tuple(failed),
        )
        log.info(
            "branch_extracted",
            branch=branch.name,
            components=len(components),
            sources=len(sources),
            issues=len(issues),
            hotspots=len(hotspots),
        )
        return snapshot

    async def extract_issues(self, branch: str | None = None) -> list[Finding]:
        return [Finding.from_issue(i) for i in await self._client.get_issues(branch)]

    async def extract_hotspot_details(self, branch: str | None = None) -> list[Finding]:
        """Hotspots with comments from ``/api/hotspots/show``.

        A failed detail fetch degrades to the list entry, which has no comments.
        """
        listed = await self._client.get_hotspots(branch)

        async def detail(entry: dict[str, Any]) -> dict[str, Any]:
            body = await self._client.get_hotspot_details(entry["key"])
            # show omits some list fields (status is kept, line may move into textRange)
            return {**entry, **body}

        outcomes = await map_concurrent(
            listed,
            detail,
            concurrency=self._performance.hotspot_extraction,
            on_progress=progress_logger("hotspot_details", len(listed)),
        )
        findings: list[Finding] = []
        for entry, outcome in zip(listed, outcomes, strict=True):
            if outcome.ok and outcome.value is not None:
                findings.append(Finding.from_hotspot(outcome.value))
            else:
                log.warning("hotspot_detail_failed", finding=entry.get("key"), error=str(outcome.error))
                findings.append(Finding.from_hotspot(entry))
        return findings
