"""Workflow mappings from source triage state to destination actions."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from typing import Any

from sonarferry.config.constants import PROVENANCE_PREFIX
from sonarferry.source.models import Comment, Finding

_RESOLUTION_TRANSITIONS = {"FALSE-POSITIVE": "falsepositive", "WONTFIX": "wontfix"}

_STATUS_TRANSITIONS = {
    "CONFIRMED": "confirm",
    "RESOLVED": "resolve",
    "CLOSED": "resolve",
    "ACCEPTED": "accept",
}

# Changelog entries also carry the moves back out of a resolved state
_CHANGELOG_TRANSITIONS = {**_STATUS_TRANSITIONS, "REOPENED": "reopen", "OPEN": "unconfirm"}

_PASSTHROUGH_HOTSPOT_RESOLUTIONS = frozenset({"ACKNOWLEDGED", "FIXED"})


def issue_transition(status: str | None, resolution: str | None = None) -> str | None:
    """Destination transition for a source issue's current state, or None."""
    if status == "CONFIRMED":
        return "confirm"
    if resolution in _RESOLUTION_TRANSITIONS:
        return _RESOLUTION_TRANSITIONS[resolution]
    return _STATUS_TRANSITIONS.get(status or "")


def changelog_transition(diffs: Iterable[dict[str, Any]]) -> str | None:
    """Transition for one changelog entry; None when it has no status diff."""
    by_key = {d.get("key"): d.get("newValue") for d in diffs}
    status = by_key.get("status")
    if not status:
        return None
    resolution = by_key.get("resolution")
    if resolution in _RESOLUTION_TRANSITIONS:
        return _RESOLUTION_TRANSITIONS[resolution]
    return _CHANGELOG_TRANSITIONS.get(status)


def transitions_from_changelog(changelog: Iterable[dict[str, Any]]) -> list[str]:
    """Ordered transitions replaying a source issue's status history."""
    transitions: list[str] = []
    for entry in changelog:
        transition = changelog_transition(entry.get("diffs") or ())
        if transition is not None:
            transitions.append(transition)
    return transitions


def hotspot_resolution(source: Finding, destination: Finding) -> str | None:
    """Resolution to apply when marking the destination hotspot REVIEWED.

    Only a destination still in TO_REVIEW is touched, and only when the
    source left TO_REVIEW.
    """
    if source.status == "TO_REVIEW" or destination.status != "TO_REVIEW":
        return None
    if source.status == "REVIEWED":
        return "SAFE"
    if source.resolution in _PASSTHROUGH_HOTSPOT_RESOLUTIONS:
        return source.resolution
    return None


def format_comment(comment: Comment) -> str:
    return f"{PROVENANCE_PREFIX} {comment.author} ({comment.timestamp}): {comment.text}"


def comment_dedupe_key(finding_key: str, comment: Comment) -> str:
    digest = hashlib.sha256(
        "\x00".join((finding_key, comment.author, comment.timestamp, comment.text)).encode("utf-8")
    ).hexdigest()
    return f"comment:{digest}"
