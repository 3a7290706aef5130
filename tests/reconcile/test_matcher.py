"""Tests for reconcile/matcher.py - fingerprint pairing."""

from dataclasses import replace

from fakes import issue

from sonarferry.reconcile.matcher import build_index, fingerprint, match_findings
from sonarferry.source.models import Finding, TextRange


class TestFingerprint:
    def test_uses_path_after_project_prefix(self) -> None:
        assert fingerprint(issue("A", component="sq-proj:src/A.java")) == ("java:S100", "src/A.java", 10)

    def test_falls_back_to_text_range_then_zero(self) -> None:
        ranged = replace(issue("A", line=None), text_range=TextRange(7, 9))
        assert fingerprint(ranged) == ("java:S100", "src/A.java", 7)
        assert fingerprint(issue("B", line=None)) == ("java:S100", "src/A.java", 0)

    def test_missing_rule_or_path_never_matches(self) -> None:
        assert fingerprint(issue("A", rule="")) is None
        assert fingerprint(issue("B", component="")) is None
        assert fingerprint(issue("C", component="proj:")) is None

    def test_hotspot_without_rule_key_uses_security_category(self) -> None:
        hotspot = Finding.from_hotspot(
            {"key": "H1", "securityCategory": "sql-injection", "component": "sq:src/db.js", "line": 3}
        )
        assert hotspot.rule == "sql-injection"
        assert fingerprint(hotspot) == ("sql-injection", "src/db.js", 3)

    def test_hotspot_rule_key_wins_over_security_category(self) -> None:
        hotspot = Finding.from_hotspot({"key": "H1", "ruleKey": "js:S2077", "securityCategory": "sql-injection"})
        assert hotspot.rule == "js:S2077"


class TestMatchFindings:
    def test_different_project_keys_still_match(self) -> None:
        matches = match_findings([issue("S1", component="sq:src/A.java")], [issue("D1", component="sc:src/A.java")])
        assert [(m.source.key, m.destination.key) for m in matches] == [("S1", "D1")]

    def test_at_most_one_to_one(self) -> None:
        """N sources sharing a fingerprint consume N of M >= N candidates, in order."""
        source = [issue("S1"), issue("S2")]
        destination = [issue("D1"), issue("D2"), issue("D3")]

        matches = match_findings(source, destination)

        assert [(m.source.key, m.destination.key) for m in matches] == [("S1", "D1"), ("S2", "D2")]
        assert len({m.destination.key for m in matches}) == len(matches)

    def test_more_sources_than_candidates(self) -> None:
        matches = match_findings([issue("S1"), issue("S2"), issue("S3")], [issue("D1")])
        assert [m.source.key for m in matches] == ["S1"]

    def test_unmatched_sources_are_dropped(self) -> None:
        matches = match_findings([issue("S1", line=11)], [issue("D1", line=10)])
        assert matches == []

    def test_empty_rule_sources_are_excluded(self) -> None:
        matches = match_findings([issue("S1", rule="")], [issue("D1", rule="")])
        assert matches == []

    def test_arrival_order_tie_break_is_positional(self) -> None:
        """Findings sharing a fingerprint pair by listing order, not by content."""
        source = [issue("S1", status="CONFIRMED"), issue("S2", status="OPEN")]
        destination = [issue("D-open"), issue("D-confirmed", status="CONFIRMED")]

        matches = match_findings(source, destination)

        assert [(m.source.key, m.destination.key) for m in matches] == [("S1", "D-open"), ("S2", "D-confirmed")]


class TestBuildIndex:
    def test_groups_by_fingerprint(self) -> None:
        index = build_index([issue("D1"), issue("D2"), issue("D3", line=3), issue("D4", rule="")])
        assert [f.key for f in index[("java:S100", "src/A.java", 10)]] == ["D1", "D2"]
        assert len(index) == 2
