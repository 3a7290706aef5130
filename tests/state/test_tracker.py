"""Tests for state/storage.py and state/tracker.py."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sonarferry.core.errors import ErrorCode, StateError
from sonarferry.state.storage import StateStorage
from sonarferry.state.tracker import StateTracker, TransferState


class TestStateStorage:
    def test_missing_file_loads_none(self, tmp_path: Path) -> None:
        assert StateStorage(tmp_path / "state.json").load() is None

    def test_save_creates_parent_dirs(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "state.json"
        StateStorage(path).save({"lastSync": None})

        assert json.loads(path.read_text()) == {"lastSync": None}
        assert [p.name for p in path.parent.iterdir()] == ["state.json"]

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{oops")

        with pytest.raises(StateError) as exc_info:
            StateStorage(path).load()
        assert exc_info.value.code == ErrorCode.STATE_INVALID_JSON

    def test_non_object_document_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("[1, 2]")

        with pytest.raises(StateError):
            StateStorage(path).load()

    def test_save_into_unwritable_location_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(StateError) as exc_info:
            StateStorage(blocker / "state.json").save({})
        assert exc_info.value.code == ErrorCode.STATE_SAVE_FAILED

    def test_clear_is_idempotent(self, tmp_path: Path) -> None:
        storage = StateStorage(tmp_path / "state.json")
        storage.save({})
        storage.clear()
        storage.clear()
        assert not storage.exists()


class TestTransferState:
    def test_legacy_processed_issues_alias(self) -> None:
        state = TransferState.from_dict({"processedIssues": ["AX1", "AX2"]})
        assert state.processed_finding_keys == ["AX1", "AX2"]

    def test_new_key_wins_over_alias(self) -> None:
        state = TransferState.from_dict({"processedIssues": ["old"], "processedFindingKeys": ["new"]})
        assert state.processed_finding_keys == ["new"]

    def test_round_trip_keys(self) -> None:
        data = TransferState(last_sync="t", completed_branches=["main"]).to_dict()
        assert set(data) == {"lastSync", "completedBranches", "processedFindingKeys", "syncHistory"}


class TestStateTracker:
    def test_fresh_state_is_empty(self, tmp_path: Path) -> None:
        tracker = StateTracker(tmp_path / "state.json")
        tracker.initialize()

        assert tracker.last_sync is None
        assert not tracker.is_branch_completed("main")
        assert not (tmp_path / "state.json").exists()

    def test_completed_branches_persist(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        tracker = StateTracker(path)
        tracker.initialize()
        tracker.mark_branch_completed("main")
        tracker.mark_branch_completed("main")
        tracker.save()

        reloaded = StateTracker(path)
        reloaded.initialize()
        assert reloaded.is_branch_completed("main")
        assert reloaded.summary().completed_branches == ("main",)

    def test_processed_findings(self, tmp_path: Path) -> None:
        tracker = StateTracker(tmp_path / "state.json")
        tracker.mark_finding_processed("comment:abc")
        tracker.mark_finding_processed("comment:abc")

        assert tracker.is_finding_processed("comment:abc")
        assert tracker.summary().processed_findings == 1

    def test_record_transfer_keeps_last_ten(self, tmp_path: Path) -> None:
        ticks = iter(f"2024-01-{day:02d}T00:00:00+00:00" for day in range(1, 13))
        tracker = StateTracker(tmp_path / "state.json", clock=lambda: next(ticks))
        tracker.initialize()

        for i in range(12):
            tracker.record_transfer(success=i % 2 == 0, stats={"run": i})

        saved = json.loads((tmp_path / "state.json").read_text())
        assert len(saved["syncHistory"]) == 10
        assert saved["syncHistory"][0]["stats"] == {"run": 2}
        assert saved["lastSync"] == "2024-01-12T00:00:00+00:00"

    def test_reset_removes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        tracker = StateTracker(path)
        tracker.mark_branch_completed("main")
        tracker.save()

        tracker.reset()

        assert not path.exists()
        assert not tracker.is_branch_completed("main")
