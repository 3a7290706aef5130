"""In-memory scanner report model: the encoder's input.

Field values are already in wire terms (enum names, epoch milliseconds,
component refs) so encoding is a direct field copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ComponentType = Literal["PROJECT", "DIRECTORY", "FILE"]
MeasureKind = Literal["boolean", "int", "long", "double", "string"]


@dataclass(frozen=True, slots=True)
class QProfile:
    key: str
    name: str
    language: str
    rules_updated_at: int = 0


@dataclass(frozen=True, slots=True)
class ReportMetadata:
    analysis_date: int
    organization_key: str
    project_key: str
    root_component_ref: int
    branch_name: str
    reference_branch_name: str
    scm_revision_id: str
    project_version: str
    qprofiles: tuple[QProfile, ...] = ()
    file_count_per_language: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True, slots=True)
class ReportComponent:
    ref: int
    type: ComponentType
    key: str = ""
    name: str = ""
    path: str = ""
    language: str = ""
    lines: int = 0
    child_refs: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class ReportTextRange:
    start_line: int
    end_line: int
    start_offset: int = 0
    end_offset: int = 0


@dataclass(frozen=True, slots=True)
class ReportIssue:
    component_ref: int
    rule_repository: str
    rule_key: str
    message: str
    severity: str
    text_range: ReportTextRange | None = None


@dataclass(frozen=True, slots=True)
class ReportMeasure:
    component_ref: int
    metric_key: str
    kind: MeasureKind
    value: bool | int | float | str


@dataclass(frozen=True, slots=True)
class ReportSource:
    component_ref: int
    text: str


@dataclass(frozen=True, slots=True)
class ReportActiveRule:
    rule_repository: str
    rule_key: str
    severity: str
    q_profile_key: str
    params: tuple[tuple[str, str], ...] = ()
    created_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True, slots=True)
class ReportChangeset:
    """Single-entry changeset covering every line of one file."""

    component_ref: int
    revision: str
    author: str
    date: int
    line_count: int


@dataclass(frozen=True, slots=True)
class ReportModel:
    metadata: ReportMetadata
    components: tuple[ReportComponent, ...]
    issues: tuple[ReportIssue, ...] = ()
    measures: tuple[ReportMeasure, ...] = ()
    sources: tuple[ReportSource, ...] = ()
    active_rules: tuple[ReportActiveRule, ...] = ()
    changesets: tuple[ReportChangeset, ...] = ()
    skipped_findings: int = 0

    @property
    def file_count(self) -> int:
        return sum(1 for c in self.components if c.type == "FILE")

    def component(self, ref: int) -> ReportComponent | None:
        for c in self.components:
            if c.ref == ref:
                return c
        return None

    def issues_for(self, ref: int) -> list[ReportIssue]:
        return [i for i in self.issues if i.component_ref == ref]
