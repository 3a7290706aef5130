"""Transfer state persistence."""

from sonarferry.state.storage import StateStorage
from sonarferry.state.tracker import StateSummary, StateTracker, TransferState

__all__ = ["StateStorage", "StateSummary", "StateTracker", "TransferState"]
