"""Snapshot data models built from source server responses.

All models are frozen: a Snapshot is produced once per branch and only
read afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

FindingKind = Literal["issue", "hotspot"]


@dataclass(frozen=True, slots=True)
class Branch:
    """A named line of development. Identity is the name."""

    name: str
    is_main: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Branch:
        return cls(name=str(data.get("name", "")), is_main=bool(data.get("isMain", False)))


@dataclass(frozen=True, slots=True)
class Comment:
    author: str
    timestamp: str
    text: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Comment:
        # issues use login/markdown, hotspot details use login/markdown or htmlText
        return cls(
            author=str(data.get("login") or data.get("author") or "unknown"),
            timestamp=str(data.get("createdAt") or data.get("date") or ""),
            text=str(data.get("markdown") or data.get("htmlText") or data.get("text") or ""),
        )


@dataclass(frozen=True, slots=True)
class TextRange:
    start_line: int
    end_line: int
    start_offset: int = 0
    end_offset: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> TextRange | None:
        if not data or "startLine" not in data:
            return None
        start = int(data["startLine"])
        return cls(
            start_line=start,
            end_line=int(data.get("endLine", start)),
            start_offset=int(data.get("startOffset", 0) or 0),
            end_offset=int(data.get("endOffset", 0) or 0),
        )


def epoch_ms(value: Any) -> int:
    """ISO-8601 API timestamp to epoch milliseconds; 0 when absent or unparsable."""
    if not value:
        return 0
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return 0


def component_path(component_key: str) -> str:
    """Path part of a component key (``project:src/a.py`` -> ``src/a.py``)."""
    if ":" not in component_key:
        return component_key
    return component_key.rsplit(":", 1)[1]


@dataclass(frozen=True, slots=True)
class Finding:
    """An issue or security hotspot as seen on one server.

    ``component`` is the full component key; matching uses ``component_path``
    because the two servers use different project key prefixes.
    """

    key: str
    kind: FindingKind
    rule: str
    component: str
    line: int | None = None
    text_range: TextRange | None = None
    status: str = ""
    resolution: str | None = None
    assignee: str | None = None
    severity: str | None = None
    message: str = ""
    effort: str | None = None
    vulnerability_probability: str | None = None
    comments: tuple[Comment, ...] = ()
    tags: tuple[str, ...] = ()

    @property
    def component_path(self) -> str:
        return component_path(self.component)

    @property
    def effective_line(self) -> int | None:
        if self.line is not None:
            return self.line
        if self.text_range is not None:
            return self.text_range.start_line
        return None

    @classmethod
    def from_issue(cls, data: dict[str, Any]) -> Finding:
        line = data.get("line")
        return cls(
            key=str(data.get("key", "")),
            kind="issue",
            rule=str(data.get("rule") or ""),
            component=str(data.get("component") or ""),
            line=int(line) if line is not None else None,
            text_range=TextRange.from_api(data.get("textRange")),
            status=str(data.get("status") or ""),
            resolution=data.get("resolution") or None,
            assignee=data.get("assignee") or None,
            severity=data.get("severity") or None,
            message=str(data.get("message") or ""),
            effort=data.get("effort") or data.get("debt") or None,
            comments=tuple(Comment.from_api(c) for c in data.get("comments") or ()),
            tags=tuple(data.get("tags") or ()),
        )

    @classmethod
    def from_hotspot(cls, data: dict[str, Any]) -> Finding:
        """Build from a hotspot list entry or a ``/api/hotspots/show`` body."""
        # show returns nested rule/component objects; search returns flat keys
        rule = data.get("ruleKey") or data.get("rule") or ""
        if isinstance(rule, dict):
            rule = rule.get("key", "")
        # Hotspots without a rule key still fingerprint by their category
        rule = rule or data.get("securityCategory") or ""
        component = data.get("component") or ""
        if isinstance(component, dict):
            component = component.get("key", "")
        line = data.get("line")
        return cls(
            key=str(data.get("key", "")),
            kind="hotspot",
            rule=str(rule),
            component=str(component),
            line=int(line) if line is not None else None,
            text_range=TextRange.from_api(data.get("textRange")),
            status=str(data.get("status") or ""),
            resolution=data.get("resolution") or None,
            assignee=data.get("assignee") or None,
            message=str(data.get("message") or ""),
            vulnerability_probability=data.get("vulnerabilityProbability") or None,
            comments=tuple(Comment.from_api(c) for c in data.get("comment") or data.get("comments") or ()),
        )


@dataclass(frozen=True, slots=True)
class Measure:
    metric: str
    value: str | None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Measure:
        value = data.get("value")
        if value is None and isinstance(data.get("period"), dict):
            value = data["period"].get("value")
        return cls(metric=str(data.get("metric", "")), value=None if value is None else str(value))


@dataclass(frozen=True, slots=True)
class ComponentNode:
    """Directory or file from the component tree (qualifier DIR or FIL)."""

    key: str
    name: str
    qualifier: str
    path: str
    language: str = ""
    measures: tuple[Measure, ...] = ()

    @property
    def is_file(self) -> bool:
        return self.qualifier == "FIL"

    @property
    def is_directory(self) -> bool:
        return self.qualifier == "DIR"

    def measure(self, metric: str) -> str | None:
        for m in self.measures:
            if m.metric == metric:
                return m.value
        return None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ComponentNode:
        key = str(data.get("key", ""))
        return cls(
            key=key,
            name=str(data.get("name") or ""),
            qualifier=str(data.get("qualifier") or ""),
            path=str(data.get("path") or component_path(key)),
            language=str(data.get("language") or ""),
            measures=tuple(Measure.from_api(m) for m in data.get("measures") or ()),
        )


@dataclass(frozen=True, slots=True)
class SourceFile:
    key: str
    content: str
    language: str = ""

    @property
    def lines(self) -> list[str]:
        return self.content.split("\n")

    @property
    def line_count(self) -> int:
        return len(self.lines)


@dataclass(frozen=True, slots=True)
class ActiveRuleInfo:
    """A rule activated in one of the project's quality profiles."""

    repository: str
    key: str
    severity: str | None
    profile_key: str
    language: str
    params: tuple[tuple[str, str], ...] = ()
    created_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Everything extracted from the source server for one branch."""

    project_key: str
    project_name: str
    branch: Branch
    analysis_date: datetime
    components: tuple[ComponentNode, ...] = ()
    sources: tuple[SourceFile, ...] = ()
    issues: tuple[Finding, ...] = ()
    hotspots: tuple[Finding, ...] = ()
    measures: tuple[Measure, ...] = ()
    active_rules: tuple[ActiveRuleInfo, ...] = ()
    revision: str | None = None
    failed_sources: tuple[str, ...] = ()

    def measure(self, metric: str) -> str | None:
        for m in self.measures:
            if m.metric == metric:
                return m.value
        return None
