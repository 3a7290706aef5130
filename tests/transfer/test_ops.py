"""Tests for transfer/ops.py - branch orchestration."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from fakes import FakeDestination, FakeEncoder, FakeExtractor, FakeUploader

from sonarferry.core.errors import EncodingError, SourceApiError, StateError
from sonarferry.source.models import Branch
from sonarferry.state.storage import StateStorage
from sonarferry.state.tracker import StateTracker
from sonarferry.transfer.models import BranchFilter, TransferOptions
from sonarferry.transfer.ops import TransferOrchestrator, pick_main


def _orchestrator(
    extractor: FakeExtractor,
    *,
    options: TransferOptions | None = None,
    state: StateTracker | None = None,
    uploader: FakeUploader | None = None,
    destination: FakeDestination | None = None,
) -> TransferOrchestrator:
    return TransferOrchestrator(
        extractor,  # type: ignore[arg-type]
        destination or FakeDestination(),  # type: ignore[arg-type]
        uploader or FakeUploader(),  # type: ignore[arg-type]
        options or TransferOptions(mode="full"),
        state=state,
        encoder=FakeEncoder(),  # type: ignore[arg-type]
    )


class TestPickMain:
    def test_flagged_branch_wins(self) -> None:
        branches = [Branch("develop"), Branch("trunk", is_main=True)]
        assert pick_main(branches).name == "trunk"

    def test_first_branch_when_none_flagged(self) -> None:
        branches = [Branch("develop"), Branch("release")]
        assert pick_main(branches).name == "develop"


class TestFullTransfer:
    @pytest.mark.asyncio
    async def test_all_branches_main_first(self, branches: list[Branch]) -> None:
        """[main, develop, feature-x] in full mode uploads three reports."""
        uploader = FakeUploader()
        result = await _orchestrator(FakeExtractor(branches), uploader=uploader).run()

        assert result.branches_transferred == ("main", "develop", "feature-x")
        assert len(uploader.uploads) == 3
        assert result.main_ok
        assert not result.failed_branches

    @pytest.mark.asyncio
    async def test_main_report_targets_destination_main_branch(self, branches: list[Branch]) -> None:
        uploader = FakeUploader()
        await _orchestrator(FakeExtractor(branches), uploader=uploader).run()

        bundles = [bundle for bundle, _ in uploader.uploads]
        assert bundles == [b"bundle:master", b"bundle:develop", b"bundle:feature-x"]

    @pytest.mark.asyncio
    async def test_stats_are_summed_over_transferred_branches(self, branches: list[Branch]) -> None:
        result = await _orchestrator(FakeExtractor(branches)).run()

        stats = result.stats
        assert stats.issues_transferred == 3
        assert stats.components_transferred == 12
        assert stats.sources_transferred == 6
        assert stats.lines_of_code == 300

    @pytest.mark.asyncio
    async def test_excluded_branch_is_skipped(self, branches: list[Branch]) -> None:
        uploader = FakeUploader()
        options = TransferOptions(mode="full", branch_filter=BranchFilter(exclude=frozenset({"develop"})))
        result = await _orchestrator(FakeExtractor(branches), options=options, uploader=uploader).run()

        assert result.branches_transferred == ("main", "feature-x")
        assert len(uploader.uploads) == 2
        assert not result.failed_branches

    @pytest.mark.asyncio
    async def test_main_only_when_sync_all_disabled(self, branches: list[Branch]) -> None:
        extractor = FakeExtractor(branches)
        options = TransferOptions(mode="full", branch_filter=BranchFilter(sync_all=False))
        result = await _orchestrator(extractor, options=options).run()

        assert result.branches_transferred == ("main",)
        assert extractor.extracted == ["main"]

    @pytest.mark.asyncio
    async def test_include_list_filters_other_branches(self, branches: list[Branch]) -> None:
        options = TransferOptions(mode="full", branch_filter=BranchFilter(include=frozenset({"main", "feature-x"})))
        result = await _orchestrator(FakeExtractor(branches), options=options).run()

        assert result.branches_transferred == ("main", "feature-x")

    @pytest.mark.asyncio
    async def test_wait_polls_each_upload(self, branches: list[Branch]) -> None:
        uploader = FakeUploader()
        options = TransferOptions(mode="full", wait=True)
        await _orchestrator(FakeExtractor(branches), options=options, uploader=uploader).run()

        assert uploader.waited == 3

    @pytest.mark.asyncio
    async def test_project_is_ensured_with_source_name(self, branches: list[Branch]) -> None:
        destination = FakeDestination()
        await _orchestrator(FakeExtractor(branches), destination=destination).run()

        assert destination.ops("ensure_project") == [("ensure_project", "Project")]


class TestMainBranchGating:
    @pytest.mark.asyncio
    async def test_include_without_main_has_no_side_effects(self, branches: list[Branch], tmp_path: Path) -> None:
        """A whitelist that leaves out main skips the project before any call."""
        extractor = FakeExtractor(branches)
        destination = FakeDestination()
        uploader = FakeUploader()
        state_path = tmp_path / "state.json"
        options = TransferOptions(mode="incremental", branch_filter=BranchFilter(include=frozenset({"develop"})))

        result = await _orchestrator(
            extractor,
            options=options,
            state=StateTracker(state_path),
            uploader=uploader,
            destination=destination,
        ).run()

        assert result.skipped
        assert result.branches_transferred == ()
        assert extractor.extracted == []
        assert uploader.uploads == []
        assert destination.calls == []
        assert not state_path.exists()


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_failed_branch_is_isolated(self) -> None:
        branches = [Branch("main", is_main=True), Branch("b1"), Branch("b2"), Branch("b3")]
        extractor = FakeExtractor(branches, fail={"b2": SourceApiError.request_failed(500, "/api/issues/search", "boom")})
        uploader = FakeUploader()

        result = await _orchestrator(extractor, uploader=uploader).run()

        assert result.branches_transferred == ("main", "b1", "b3")
        assert [f.branch for f in result.failed_branches] == ["b2"]
        assert "boom" in result.failed_branches[0].error
        assert result.stats.issues_transferred == 3
        assert result.stats.lines_of_code == 300
        assert len(uploader.uploads) == 3

    @pytest.mark.asyncio
    async def test_main_failure_aborts_transfer(self, branches: list[Branch]) -> None:
        extractor = FakeExtractor(branches, fail={"main": EncodingError.build_failed("bad snapshot")})
        uploader = FakeUploader()

        with pytest.raises(EncodingError):
            await _orchestrator(extractor, uploader=uploader).run()

        assert extractor.extracted == ["main"]
        assert uploader.uploads == []

    @pytest.mark.asyncio
    async def test_failed_branch_is_not_marked_completed(self, tmp_path: Path) -> None:
        branches = [Branch("main", is_main=True), Branch("develop")]
        extractor = FakeExtractor(branches, fail={"develop": SourceApiError.not_found("branch develop")})
        state = StateTracker(tmp_path / "state.json")

        await _orchestrator(extractor, options=TransferOptions(mode="incremental"), state=state).run()

        saved = json.loads((tmp_path / "state.json").read_text())
        assert saved["completedBranches"] == ["main"]
        assert saved["syncHistory"][-1]["success"] is False


class TestIncrementalMode:
    @pytest.mark.asyncio
    async def test_second_run_transfers_nothing(self, branches: list[Branch], tmp_path: Path) -> None:
        """Re-running with every branch completed uploads nothing."""
        state_path = tmp_path / "state.json"
        options = TransferOptions(mode="incremental")

        first = await _orchestrator(FakeExtractor(branches), options=options, state=StateTracker(state_path)).run()
        uploader = FakeUploader()
        second = await _orchestrator(
            FakeExtractor(branches), options=options, state=StateTracker(state_path), uploader=uploader
        ).run()

        assert first.branches_transferred == ("main", "develop", "feature-x")
        assert second.branches_transferred == ()
        assert uploader.uploads == []
        assert second.main_ok

    @pytest.mark.asyncio
    async def test_history_entry_records_stats(self, branches: list[Branch], tmp_path: Path) -> None:
        state_path = tmp_path / "state.json"
        await _orchestrator(
            FakeExtractor(branches), options=TransferOptions(mode="incremental"), state=StateTracker(state_path)
        ).run()

        saved = json.loads(state_path.read_text())
        entry = saved["syncHistory"][-1]
        assert entry["success"] is True
        assert entry["stats"]["branchesTransferred"] == ["main", "develop", "feature-x"]
        assert saved["lastSync"] == entry["timestamp"]

    @pytest.mark.asyncio
    async def test_full_mode_ignores_state(self, branches: list[Branch], tmp_path: Path) -> None:
        state_path = tmp_path / "state.json"
        state_path.write_text(json.dumps({"completedBranches": ["main", "develop", "feature-x"]}))

        result = await _orchestrator(
            FakeExtractor(branches), options=TransferOptions(mode="full"), state=StateTracker(state_path)
        ).run()

        assert result.branches_transferred == ("main", "develop", "feature-x")
        assert json.loads(state_path.read_text()) == {"completedBranches": ["main", "develop", "feature-x"]}

    @pytest.mark.asyncio
    async def test_unreadable_state_becomes_warning(self, branches: list[Branch], tmp_path: Path) -> None:
        state_path = tmp_path / "state.json"
        state_path.write_text("{not json")

        result = await _orchestrator(
            FakeExtractor(branches), options=TransferOptions(mode="incremental"), state=StateTracker(state_path)
        ).run()

        assert result.branches_transferred == ("main", "develop", "feature-x")
        assert result.warnings
        assert state_path.read_text() == "{not json"

    @pytest.mark.asyncio
    async def test_failed_state_save_becomes_warning(self, branches: list[Branch], tmp_path: Path) -> None:
        """An unwritable state file never aborts the transfer."""
        state_path = tmp_path / "state.json"
        error = StateError.save_failed(str(state_path), "disk full")

        with patch.object(StateStorage, "save", side_effect=error):
            result = await _orchestrator(
                FakeExtractor(branches), options=TransferOptions(mode="incremental"), state=StateTracker(state_path)
            ).run()

        assert result.branches_transferred == ("main", "develop", "feature-x")
        assert not result.failed_branches
        assert len(result.warnings) == 4
        assert all("State save failed" in w and "disk full" in w for w in result.warnings)
        assert not state_path.exists()
