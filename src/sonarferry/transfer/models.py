"""Transfer options and immutable per-step result records.

Each branch yields a ``BranchStats``; the orchestrator folds them into a
running ``TransferStats`` instead of mutating a shared accumulator.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from sonarferry.config.models import SonarFerryConfig, TransferMode
from sonarferry.source.models import Branch, Measure

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def lines_of_code_from(measures: Iterable[Measure]) -> int:
    """Integer prefix of the ``ncloc`` measure; 0 when missing or non-numeric."""
    for m in measures:
        if m.metric != "ncloc":
            continue
        match = _LEADING_INT.match(m.value or "")
        return int(match.group(1)) if match else 0
    return 0


@dataclass(frozen=True, slots=True)
class BranchFilter:
    """Which branches a run may touch.

    ``include`` is a whitelist when not None. A whitelist that leaves out
    the main branch skips the whole project.
    """

    exclude: frozenset[str] = frozenset()
    include: frozenset[str] | None = None
    sync_all: bool = True

    def allows_main(self, main: Branch) -> bool:
        return self.include is None or main.name in self.include

    def skip_reason(self, branch: Branch) -> str | None:
        """Why a non-main branch is filtered out, or None when it is selected."""
        if not self.sync_all:
            return "main_only"
        if branch.name in self.exclude:
            return "excluded"
        if self.include is not None and branch.name not in self.include:
            return "not_included"
        return None


@dataclass(frozen=True, slots=True)
class TransferOptions:
    mode: TransferMode = "incremental"
    batch_size: int = 100
    wait: bool = False
    max_wait_sec: float = 300.0
    branch_filter: BranchFilter = field(default_factory=BranchFilter)

    @property
    def incremental(self) -> bool:
        return self.mode == "incremental"

    @classmethod
    def from_config(cls, config: SonarFerryConfig, *, wait: bool = False) -> TransferOptions:
        transfer = config.transfer
        return cls(
            mode=transfer.mode,
            batch_size=transfer.batch_size,
            wait=wait,
            max_wait_sec=config.timeouts.analysis_wait_sec,
            branch_filter=BranchFilter(
                exclude=frozenset(transfer.exclude_branches),
                include=None if transfer.include_branches is None else frozenset(transfer.include_branches),
                sync_all=transfer.sync_all_branches,
            ),
        )


@dataclass(frozen=True, slots=True)
class BranchStats:
    issues: int = 0
    components: int = 0
    sources: int = 0
    lines_of_code: int = 0


@dataclass(frozen=True, slots=True)
class TransferStats:
    issues_transferred: int = 0
    components_transferred: int = 0
    sources_transferred: int = 0
    lines_of_code: int = 0
    branches_transferred: tuple[str, ...] = ()

    def fold(self, branch: str, stats: BranchStats) -> TransferStats:
        return replace(
            self,
            issues_transferred=self.issues_transferred + stats.issues,
            components_transferred=self.components_transferred + stats.components,
            sources_transferred=self.sources_transferred + stats.sources,
            lines_of_code=self.lines_of_code + stats.lines_of_code,
            branches_transferred=(*self.branches_transferred, branch),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "issuesTransferred": self.issues_transferred,
            "componentsTransferred": self.components_transferred,
            "sourcesTransferred": self.sources_transferred,
            "linesOfCode": self.lines_of_code,
            "branchesTransferred": list(self.branches_transferred),
        }


@dataclass(frozen=True, slots=True)
class BranchFailure:
    branch: str
    error: str


@dataclass(frozen=True, slots=True)
class TransferResult:
    project_key: str
    destination_project_key: str
    stats: TransferStats = field(default_factory=TransferStats)
    skipped_reason: str | None = None
    main_ok: bool = False
    failed_branches: tuple[BranchFailure, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @property
    def branches_transferred(self) -> tuple[str, ...]:
        return self.stats.branches_transferred
