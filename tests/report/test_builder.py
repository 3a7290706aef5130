"""Tests for snapshot-to-report conversion."""

import dataclasses

import pytest
from fakes import make_snapshot

from sonarferry.report.builder import (
    BuildTarget,
    ReportBuilder,
    fallback_revision,
    finding_severity,
    parse_measure_value,
    split_rule,
)
from sonarferry.source.models import ActiveRuleInfo, Finding, SourceFile

TARGET = BuildTarget(organization="acme", project_key="acme_proj", branch_name="main", reference_branch_name="master")
JS_PROFILE = {"key": "AXjs", "name": "Sonar way", "language": "js", "rulesUpdatedAt": "2024-01-01T00:00:00+00:00"}


def _build(snapshot=None, profiles=(JS_PROFILE,)):
    return ReportBuilder(snapshot or make_snapshot(), TARGET, profiles).build()


class TestTopology:
    def test_project_is_ref_one_with_top_level_directory(self) -> None:
        report = _build()

        project = report.component(1)
        assert project is not None
        assert project.type == "PROJECT"
        assert project.key == "acme_proj"
        assert project.name == "Project"
        assert project.child_refs == (2,)

    def test_directories_nest_and_files_attach_to_closest_directory(self) -> None:
        """src holds util and app.js; util holds helpers.js."""
        report = _build()
        by_path = {c.path: c for c in report.components if c.path}

        assert by_path["src"].child_refs == (by_path["src/util"].ref, by_path["src/app.js"].ref)
        assert by_path["src/util"].child_refs == (by_path["src/util/helpers.js"].ref,)
        assert report.file_count == 2

    def test_file_lines_come_from_source_text(self) -> None:
        report = _build()
        app = next(c for c in report.components if c.path == "src/app.js")
        assert app.lines == 3
        assert app.language == "js"

    def test_source_missing_from_tree_attaches_to_project(self) -> None:
        snapshot = make_snapshot()
        extra = SourceFile(key="proj:lib/extra.js", content="z", language="js")
        report = _build(dataclasses.replace(snapshot, sources=(*snapshot.sources, extra)))

        added = next(c for c in report.components if c.path == "lib/extra.js")
        assert added.ref in report.component(1).child_refs

    def test_files_without_source_are_dropped_with_their_findings(self) -> None:
        """A file with no source text is omitted, and so are its findings."""
        # Given
        snapshot = make_snapshot()
        orphan = Finding(key="X", kind="issue", rule="javascript:S1", component="proj:src/gone.js", line=1)
        snapshot = dataclasses.replace(
            snapshot,
            sources=snapshot.sources[:1],
            issues=(*snapshot.issues, orphan),
        )

        # When
        report = _build(snapshot)

        # Then
        paths = {c.path for c in report.components}
        assert "src/util/helpers.js" not in paths
        assert "src/util" not in paths
        assert report.skipped_findings == 1
        assert len(report.issues) == 1


class TestIssuesAndMeasures:
    def test_issue_points_at_file_ref_with_line_range(self) -> None:
        report = _build()
        app = next(c for c in report.components if c.path == "src/app.js")

        [issue] = report.issues_for(app.ref)
        assert issue.rule_repository == "javascript"
        assert issue.rule_key == "S1481"
        assert issue.severity == "MAJOR"
        assert issue.text_range is not None
        assert (issue.text_range.start_line, issue.text_range.end_line) == (1, 1)

    def test_file_measures_are_typed(self) -> None:
        report = _build()
        values = {m.metric_key: (m.kind, m.value) for m in report.measures}
        assert values == {"ncloc": ("int", 3), "coverage": ("double", 75.5)}

    @pytest.mark.parametrize(
        ("metric", "raw", "expected"),
        [
            ("ncloc", "12", ("int", 12)),
            ("ncloc", "4294967296", ("long", 4294967296)),
            ("coverage", "81.2", ("double", 81.2)),
            ("some_flag", "true", ("boolean", True)),
            ("alert_status", "OK", ("string", "OK")),
            ("ncloc_language_distribution", "js=12", ("string", "js=12")),
        ],
    )
    def test_parse_measure_value(self, metric: str, raw: str, expected: tuple) -> None:
        assert parse_measure_value(metric, raw) == expected

    @pytest.mark.parametrize(
        ("finding", "expected"),
        [
            (Finding(key="a", kind="issue", rule="r", component="c", severity="blocker"), "BLOCKER"),
            (Finding(key="a", kind="issue", rule="r", component="c", severity="WEIRD"), "MAJOR"),
            (Finding(key="a", kind="hotspot", rule="r", component="c", vulnerability_probability="HIGH"), "CRITICAL"),
            (Finding(key="a", kind="hotspot", rule="r", component="c", vulnerability_probability="LOW"), "MINOR"),
            (Finding(key="a", kind="hotspot", rule="r", component="c"), "MAJOR"),
        ],
    )
    def test_finding_severity(self, finding: Finding, expected: str) -> None:
        assert finding_severity(finding) == expected

    def test_split_rule(self) -> None:
        assert split_rule("java:S1234") == ("java", "S1234")
        assert split_rule("S1234") == ("", "S1234")


class TestMetadata:
    def test_branch_and_reference(self) -> None:
        metadata = _build().metadata

        assert metadata.branch_name == "main"
        assert metadata.reference_branch_name == "master"
        assert metadata.organization_key == "acme"
        assert metadata.scm_revision_id == "a" * 40
        assert metadata.file_count_per_language == (("js", 2),)

    def test_destination_profile_is_used(self) -> None:
        [profile] = _build().metadata.qprofiles
        assert profile.key == "AXjs"
        assert profile.rules_updated_at > 0

    def test_missing_profile_falls_back_to_default(self) -> None:
        [profile] = _build(profiles=()).metadata.qprofiles
        assert profile.key == "default-js"
        assert profile.name == "Sonar way"

    def test_missing_revision_uses_stable_fallback(self) -> None:
        snapshot = dataclasses.replace(make_snapshot(), revision=None)

        first = _build(snapshot).metadata.scm_revision_id
        second = _build(snapshot).metadata.scm_revision_id

        assert first == second
        assert len(first) == 40
        assert first == fallback_revision("proj", "main", int(snapshot.analysis_date.timestamp() * 1000))

    def test_active_rules_take_destination_profile_key(self) -> None:
        rule = ActiveRuleInfo(repository="javascript", key="S1481", severity="minor", profile_key="src-js", language="js")
        snapshot = dataclasses.replace(make_snapshot(), active_rules=(rule,))

        [active] = _build(snapshot).active_rules

        assert active.q_profile_key == "AXjs"
        assert active.severity == "MINOR"


def test_changeset_per_file_covers_all_lines() -> None:
    report = _build()
    by_ref = {c.component_ref: c for c in report.changesets}
    app = next(c for c in report.components if c.path == "src/app.js")

    assert by_ref[app.ref].line_count == 3
    assert by_ref[app.ref].revision == "a" * 40
    assert len(by_ref) == 2
