"""Builds a ReportModel from one branch Snapshot.

The component tree keeps the source's directory/file topology: each kept
component is linked to the closest ancestor directory present in the
snapshot, falling back to the project root. Files without source text are
dropped, and so are the findings attached to them.
"""

from __future__ import annotations

import hashlib
import posixpath
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from sonarferry.config.constants import DEFAULT_PROJECT_VERSION, STRING_METRICS
from sonarferry.core.errors import EncodingError
from sonarferry.report.models import (
    MeasureKind,
    QProfile,
    ReportActiveRule,
    ReportChangeset,
    ReportComponent,
    ReportIssue,
    ReportMeasure,
    ReportMetadata,
    ReportModel,
    ReportSource,
    ReportTextRange,
)
from sonarferry.source.models import ComponentNode, Finding, Snapshot, component_path, epoch_ms

log = structlog.get_logger(__name__)

_SEVERITIES = frozenset({"INFO", "MINOR", "MAJOR", "CRITICAL", "BLOCKER"})

_HOTSPOT_SEVERITY = {"HIGH": "CRITICAL", "MEDIUM": "MAJOR", "LOW": "MINOR"}

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1

CHANGESET_AUTHOR = "sonarferry-migration@sonarcloud.io"


def parse_measure_value(metric: str, raw: str) -> tuple[MeasureKind, bool | int | float | str]:
    """Type a raw API measure value the way the scanner would report it."""
    if metric in STRING_METRICS:
        return "string", raw
    if raw in ("true", "false"):
        return "boolean", raw == "true"
    try:
        as_int = int(raw)
    except ValueError:
        pass
    else:
        return ("int", as_int) if _INT32_MIN <= as_int <= _INT32_MAX else ("long", as_int)
    try:
        return "double", float(raw)
    except ValueError:
        return "string", raw


def finding_severity(finding: Finding) -> str:
    if finding.kind == "hotspot":
        return _HOTSPOT_SEVERITY.get(finding.vulnerability_probability or "", "MAJOR")
    severity = (finding.severity or "").upper()
    return severity if severity in _SEVERITIES else "MAJOR"


def split_rule(rule: str) -> tuple[str, str]:
    """``java:S1234`` -> (``java``, ``S1234``)."""
    repository, sep, key = rule.partition(":")
    if not sep:
        return "", rule
    return repository, key


def fallback_revision(project_key: str, branch: str, analysis_date: int) -> str:
    """Deterministic 40-hex stand-in for a missing SCM revision."""
    seed = f"{project_key}\0{branch}\0{analysis_date}".encode()
    return hashlib.sha1(seed, usedforsecurity=False).hexdigest()


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """Destination-side identity of the report being built."""

    organization: str
    project_key: str
    branch_name: str
    reference_branch_name: str
    project_version: str = DEFAULT_PROJECT_VERSION


class ReportBuilder:
    """Converts a Snapshot into a ReportModel. One builder per branch."""

    def __init__(
        self,
        snapshot: Snapshot,
        target: BuildTarget,
        destination_profiles: Sequence[dict[str, Any]] = (),
    ) -> None:
        self._snapshot = snapshot
        self._target = target
        self._profiles = {str(p.get("language", "")).lower(): p for p in destination_profiles}
        self._analysis_ms = int(snapshot.analysis_date.timestamp() * 1000)

    def build(self) -> ReportModel:
        try:
            return self._build()
        except EncodingError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise EncodingError.build_failed(str(e), branch=self._snapshot.branch.name) from e

    def _build(self) -> ReportModel:
        snap = self._snapshot
        sources = {s.key: s for s in snap.sources}

        files = [c for c in snap.components if c.is_file and c.key in sources]
        known = {c.key for c in files}
        # source files missing from the component tree are still reported
        for source in snap.sources:
            if source.key not in known:
                files.append(
                    ComponentNode(
                        key=source.key,
                        name=posixpath.basename(component_path(source.key)),
                        qualifier="FIL",
                        path=component_path(source.key),
                        language=source.language,
                    )
                )
                known.add(source.key)

        directories = self._directories_with_files(files)
        refs: dict[str, int] = {}
        next_ref = 2
        for node in [*directories, *files]:
            refs[node.key] = next_ref
            next_ref += 1

        components = self._components(directories, files, refs)
        issues, skipped = self._issues(refs)
        if skipped:
            log.warning("findings_skipped_without_source", branch=snap.branch.name, skipped=skipped)

        report = ReportModel(
            metadata=self._metadata(),
            components=components,
            issues=issues,
            measures=self._measures(files, refs),
            sources=tuple(ReportSource(refs[f.key], sources[f.key].content) for f in files),
            active_rules=self._active_rules(),
            changesets=tuple(
                ReportChangeset(
                    component_ref=refs[f.key],
                    revision=self._revision(),
                    author=CHANGESET_AUTHOR,
                    date=self._analysis_ms,
                    line_count=sources[f.key].line_count,
                )
                for f in files
            ),
            skipped_findings=skipped,
        )
        log.debug(
            "report_built",
            branch=snap.branch.name,
            components=len(components),
            issues=len(issues),
            skipped=skipped,
        )
        return report

    def _directories_with_files(self, files: list[ComponentNode]) -> list[ComponentNode]:
        """Directories from the snapshot that contain at least one kept file."""
        dirs = [c for c in self._snapshot.components if c.is_directory]
        used: set[str] = set()
        for f in files:
            parent = posixpath.dirname(f.path)
            while parent:
                used.add(parent)
                parent = posixpath.dirname(parent)
        return [d for d in dirs if d.path in used]

    def _components(
        self,
        directories: list[ComponentNode],
        files: list[ComponentNode],
        refs: dict[str, int],
    ) -> tuple[ReportComponent, ...]:
        sources = {s.key: s for s in self._snapshot.sources}
        dir_ref_by_path = {d.path: refs[d.key] for d in directories}
        children: dict[int, list[int]] = {1: []}

        def parent_ref(path: str) -> int:
            parent = posixpath.dirname(path)
            while parent:
                if parent in dir_ref_by_path:
                    return dir_ref_by_path[parent]
                parent = posixpath.dirname(parent)
            return 1

        for node in [*directories, *files]:
            children.setdefault(parent_ref(node.path), []).append(refs[node.key])

        result = [
            ReportComponent(
                ref=1,
                type="PROJECT",
                key=self._target.project_key,
                name=self._snapshot.project_name,
                child_refs=tuple(children[1]),
            )
        ]
        for d in directories:
            ref = refs[d.key]
            result.append(
                ReportComponent(
                    ref=ref,
                    type="DIRECTORY",
                    name=d.name,
                    path=d.path,
                    child_refs=tuple(children.get(ref, ())),
                )
            )
        for f in files:
            source = sources[f.key]
            lines = source.line_count
            if not lines:
                lines = int(f.measure("lines") or 0)
            result.append(
                ReportComponent(
                    ref=refs[f.key],
                    type="FILE",
                    name=f.name,
                    path=f.path,
                    language=f.language or source.language,
                    lines=lines,
                )
            )
        return tuple(result)

    def _issues(self, refs: dict[str, int]) -> tuple[tuple[ReportIssue, ...], int]:
        issues: list[ReportIssue] = []
        skipped = 0
        for finding in (*self._snapshot.issues, *self._snapshot.hotspots):
            ref = refs.get(finding.component)
            if ref is None:
                skipped += 1
                continue
            repository, key = split_rule(finding.rule)
            text_range = None
            if finding.text_range is not None:
                tr = finding.text_range
                text_range = ReportTextRange(tr.start_line, tr.end_line, tr.start_offset, tr.end_offset)
            elif finding.line is not None:
                text_range = ReportTextRange(finding.line, finding.line)
            issues.append(
                ReportIssue(
                    component_ref=ref,
                    rule_repository=repository,
                    rule_key=key,
                    message=finding.message,
                    severity=finding_severity(finding),
                    text_range=text_range,
                )
            )
        return tuple(issues), skipped

    def _measures(self, files: list[ComponentNode], refs: dict[str, int]) -> tuple[ReportMeasure, ...]:
        measures: list[ReportMeasure] = []
        for f in files:
            for m in f.measures:
                if m.value is None:
                    continue
                kind, value = parse_measure_value(m.metric, m.value)
                measures.append(ReportMeasure(refs[f.key], m.metric, kind, value))
        return tuple(measures)

    def _active_rules(self) -> tuple[ReportActiveRule, ...]:
        rules: list[ReportActiveRule] = []
        for rule in self._snapshot.active_rules:
            profile = self._profiles.get(rule.language)
            severity = (rule.severity or "").upper()
            rules.append(
                ReportActiveRule(
                    rule_repository=rule.repository,
                    rule_key=rule.key,
                    severity=severity if severity in _SEVERITIES else "MAJOR",
                    q_profile_key=str(profile["key"]) if profile else rule.profile_key,
                    params=rule.params,
                    created_at=rule.created_at,
                    updated_at=rule.updated_at,
                )
            )
        return tuple(rules)

    def _qprofiles(self) -> tuple[QProfile, ...]:
        languages = {r.language for r in self._snapshot.active_rules if r.language}
        languages |= {s.language.lower() for s in self._snapshot.sources if s.language}
        result: list[QProfile] = []
        for language in sorted(languages):
            profile = self._profiles.get(language)
            if profile is None:
                log.warning("destination_profile_missing", language=language)
                result.append(QProfile(f"default-{language}", "Sonar way", language, self._analysis_ms))
                continue
            result.append(
                QProfile(
                    key=str(profile.get("key", "")),
                    name=str(profile.get("name", "")),
                    language=language,
                    rules_updated_at=epoch_ms(profile.get("rulesUpdatedAt")) or self._analysis_ms,
                )
            )
        return tuple(result)

    def _revision(self) -> str:
        return self._snapshot.revision or fallback_revision(
            self._snapshot.project_key, self._snapshot.branch.name, self._analysis_ms
        )

    def _metadata(self) -> ReportMetadata:
        counts: dict[str, int] = {}
        for source in self._snapshot.sources:
            language = source.language or "unknown"
            counts[language] = counts.get(language, 0) + 1
        return ReportMetadata(
            analysis_date=self._analysis_ms,
            organization_key=self._target.organization,
            project_key=self._target.project_key,
            root_component_ref=1,
            branch_name=self._target.branch_name,
            reference_branch_name=self._target.reference_branch_name,
            scm_revision_id=self._revision(),
            project_version=self._target.project_version,
            qprofiles=self._qprofiles(),
            file_count_per_language=tuple(sorted(counts.items())),
        )

