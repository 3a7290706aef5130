"""Fingerprint matching between source and destination findings.

The two servers share no primary key, so findings are correlated by
``(rule, file path, line)``. When several destination findings share a
fingerprint they are handed out in the order the destination listed
them, one per source finding. That tie-break is positional: two issues
of the same rule on the same line can be paired crosswise.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable

import structlog

from sonarferry.reconcile.models import Fingerprint, Match
from sonarferry.source.models import Finding

log = structlog.get_logger(__name__)


def fingerprint(finding: Finding) -> Fingerprint | None:
    """None when the finding has no rule or no file path; such findings never match."""
    path = finding.component_path
    if not finding.rule or not path:
        return None
    return (finding.rule, path, finding.effective_line or 0)


def build_index(findings: Iterable[Finding]) -> dict[Fingerprint, deque[Finding]]:
    index: dict[Fingerprint, deque[Finding]] = defaultdict(deque)
    for finding in findings:
        fp = fingerprint(finding)
        if fp is not None:
            index[fp].append(finding)
    return dict(index)


def match_findings(source: Iterable[Finding], destination: Iterable[Finding]) -> list[Match]:
    """Pair each source finding with the first unconsumed destination candidate."""
    index = build_index(destination)
    matches: list[Match] = []
    unmatched = 0
    for finding in source:
        fp = fingerprint(finding)
        candidates = index.get(fp) if fp is not None else None
        if not candidates:
            unmatched += 1
            continue
        matches.append(Match(source=finding, destination=candidates.popleft()))

    log.debug("findings_matched", matched=len(matches), unmatched=unmatched)
    return matches
