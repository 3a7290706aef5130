"""Source server reader and snapshot models."""

from sonarferry.source.client import SourceClient
from sonarferry.source.extractor import SnapshotExtractor
from sonarferry.source.models import (
    Branch,
    Comment,
    ComponentNode,
    Finding,
    Measure,
    Snapshot,
    SourceFile,
    TextRange,
)

__all__ = [
    "SourceClient",
    "SnapshotExtractor",
    "Branch",
    "Comment",
    "ComponentNode",
    "Finding",
    "Measure",
    "Snapshot",
    "SourceFile",
    "TextRange",
]
