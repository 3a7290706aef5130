"""Branch-by-branch report transfer."""

from sonarferry.transfer.models import (
    BranchFailure,
    BranchFilter,
    BranchStats,
    TransferOptions,
    TransferResult,
    TransferStats,
    lines_of_code_from,
)
from sonarferry.transfer.ops import TransferOrchestrator, pick_main

__all__ = [
    "TransferOrchestrator",
    "pick_main",
    "BranchFailure",
    "BranchFilter",
    "BranchStats",
    "TransferOptions",
    "TransferResult",
    "TransferStats",
    "lines_of_code_from",
]
