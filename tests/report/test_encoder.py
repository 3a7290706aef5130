"""Tests for report encoding and bundle packing."""

import io
import zipfile

import pytest
from fakes import make_snapshot

from sonarferry.core.errors import EncodingError
from sonarferry.report.builder import BuildTarget, ReportBuilder
from sonarferry.report.encoder import ReportEncoder, encode_varint
from sonarferry.report.schema import (
    ENUM_TYPES,
    MESSAGE_TYPES,
    get_schema,
    load_schema_with,
    read_module_file,
    read_package_resource,
)

TARGET = BuildTarget(organization="acme", project_key="acme_proj", branch_name="develop", reference_branch_name="master")


def _report():
    return ReportBuilder(make_snapshot("develop"), TARGET).build()


def _read_delimited(data: bytes) -> list[bytes]:
    messages = []
    pos = 0
    while pos < len(data):
        length = shift = 0
        while True:
            byte = data[pos]
            pos += 1
            length |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                break
        messages.append(data[pos : pos + length])
        pos += length
    return messages


class TestVarint:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, b"\x00"), (1, b"\x01"), (127, b"\x7f"), (128, b"\x80\x01"), (300, b"\xac\x02")],
    )
    def test_encode_varint(self, value: int, expected: bytes) -> None:
        assert encode_varint(value) == expected


class TestBundle:
    def test_same_report_yields_identical_bytes(self) -> None:
        report = _report()
        assert ReportEncoder().bundle(report) == ReportEncoder().bundle(report)

    def test_entries_in_fixed_order(self) -> None:
        bundle = ReportEncoder().bundle(_report())

        names = zipfile.ZipFile(io.BytesIO(bundle)).namelist()

        assert names == [
            "metadata.pb",
            "component-1.pb",
            "component-2.pb",
            "component-3.pb",
            "component-4.pb",
            "component-5.pb",
            "issues-4.pb",
            "measures-4.pb",
            "source-4.txt",
            "source-5.txt",
            "activerules.pb",
            "changesets-4.pb",
            "changesets-5.pb",
            "context-props.pb",
        ]

    def test_metadata_round_trips_through_schema(self) -> None:
        """The encoded metadata parses back with the branch identity intact."""
        # Given
        schema = get_schema()
        bundle = ReportEncoder(schema).bundle(_report())

        # When
        raw = zipfile.ZipFile(io.BytesIO(bundle)).read("metadata.pb")
        metadata = schema.message("Metadata")()
        metadata.ParseFromString(raw)

        # Then
        assert metadata.branch_name == "develop"
        assert metadata.reference_branch_name == "master"
        assert metadata.organization_key == "acme"
        assert metadata.root_component_ref == 1
        assert metadata.branch_type == schema.enum_value("Metadata.BranchType", "BRANCH")
        assert metadata.analyzed_indexed_file_count_per_type["js"] == 2

    def test_issues_are_length_delimited(self) -> None:
        schema = get_schema()
        snapshot = make_snapshot("develop", issues=3)
        bundle = ReportEncoder(schema).bundle(ReportBuilder(snapshot, TARGET).build())

        raw = zipfile.ZipFile(io.BytesIO(bundle)).read("issues-4.pb")
        issues = []
        for chunk in _read_delimited(raw):
            msg = schema.message("Issue")()
            msg.ParseFromString(chunk)
            issues.append(msg)

        assert [i.text_range.start_line for i in issues] == [1, 2, 3]
        assert {i.rule_key for i in issues} == {"S1481"}

    def test_file_component_fields(self) -> None:
        schema = get_schema()
        bundle = ReportEncoder(schema).bundle(_report())

        component = schema.message("Component")()
        component.ParseFromString(zipfile.ZipFile(io.BytesIO(bundle)).read("component-4.pb"))

        assert component.project_relative_path == "src/app.js"
        assert component.lines == 3
        assert component.type == schema.enum_value("Component.ComponentType", "FILE")

    def test_source_text_is_utf8(self) -> None:
        bundle = ReportEncoder().bundle(_report())
        assert zipfile.ZipFile(io.BytesIO(bundle)).read("source-4.txt") == b"a\nb\nc"


class TestSchemaStrategies:
    def test_strategies_yield_equivalent_schemas(self) -> None:
        from_resource = load_schema_with((read_package_resource,))
        from_file = load_schema_with((read_module_file,))

        for name in MESSAGE_TYPES:
            assert from_resource.message(name).DESCRIPTOR.full_name == from_file.message(name).DESCRIPTOR.full_name
        for enum_name in ENUM_TYPES:
            a = from_resource.pool.FindEnumTypeByName(enum_name)
            b = from_file.pool.FindEnumTypeByName(enum_name)
            assert [(v.name, v.number) for v in a.values] == [(v.name, v.number) for v in b.values]

    def test_next_strategy_used_when_first_unavailable(self) -> None:
        def missing() -> str:
            raise OSError("not packaged")

        schema = load_schema_with((missing, read_module_file))
        assert schema.enum_value("Severity", "MAJOR") > 0

    def test_all_strategies_failing_raises(self) -> None:
        def missing() -> str:
            raise OSError("not packaged")

        with pytest.raises(EncodingError):
            load_schema_with((missing,))

    def test_unknown_enum_value_raises(self) -> None:
        with pytest.raises(EncodingError):
            get_schema().enum_value("Severity", "SEVERE")
