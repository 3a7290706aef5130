"""Encodes a ReportModel into the scanner report ZIP bundle.

Encoding is pure: the same model always produces the same bytes. Protobuf
output uses deterministic serialization, ZIP entries carry a fixed
timestamp and are written in a fixed order.
"""

from __future__ import annotations

import io
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from google.protobuf.message import EncodeError, Message

from sonarferry.core.errors import EncodingError
from sonarferry.report.models import (
    ReportActiveRule,
    ReportChangeset,
    ReportComponent,
    ReportIssue,
    ReportMeasure,
    ReportMetadata,
    ReportModel,
)
from sonarferry.report.schema import ReportSchema, get_schema

log = structlog.get_logger(__name__)

_ZIP_DATE = (1980, 1, 1, 0, 0, 0)

PLUGIN_KEY = "javascript"


def encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def _serialize(message: Message) -> bytes:
    try:
        return message.SerializeToString(deterministic=True)
    except EncodeError as e:
        raise EncodingError.encode_failed(message.DESCRIPTOR.name, str(e)) from e


def _delimited(messages: Iterable[Message]) -> bytes:
    buf = bytearray()
    for message in messages:
        data = _serialize(message)
        buf += encode_varint(len(data))
        buf += data
    return bytes(buf)


@dataclass
class EncodedReport:
    """Encoded report parts, keyed by component ref where per-component."""

    metadata: bytes
    components: dict[int, bytes] = field(default_factory=dict)
    issues: dict[int, bytes] = field(default_factory=dict)
    measures: dict[int, bytes] = field(default_factory=dict)
    sources: dict[int, str] = field(default_factory=dict)
    active_rules: bytes = b""
    changesets: dict[int, bytes] = field(default_factory=dict)

    def entries(self) -> list[tuple[str, bytes]]:
        """ZIP entries in their fixed write order."""
        result: list[tuple[str, bytes]] = [("metadata.pb", self.metadata)]
        result += [(f"component-{ref}.pb", data) for ref, data in sorted(self.components.items())]
        result += [(f"issues-{ref}.pb", data) for ref, data in sorted(self.issues.items())]
        result += [(f"measures-{ref}.pb", data) for ref, data in sorted(self.measures.items())]
        result += [(f"source-{ref}.txt", text.encode("utf-8")) for ref, text in sorted(self.sources.items())]
        result.append(("activerules.pb", self.active_rules))
        result += [(f"changesets-{ref}.pb", data) for ref, data in sorted(self.changesets.items())]
        result.append(("context-props.pb", b""))
        return result


class ReportEncoder:
    """Stateless encoder over a loaded ReportSchema."""

    def __init__(self, schema: ReportSchema | None = None) -> None:
        self._schema = schema

    @property
    def schema(self) -> ReportSchema:
        if self._schema is None:
            self._schema = get_schema()
        return self._schema

    def _metadata(self, m: ReportMetadata) -> Message:
        msg = self.schema.message("Metadata")()
        msg.analysis_date = m.analysis_date
        msg.organization_key = m.organization_key
        msg.project_key = m.project_key
        msg.root_component_ref = m.root_component_ref
        msg.cross_project_duplication_activated = False
        msg.branch_name = m.branch_name
        msg.branch_type = self.schema.enum_value("Metadata.BranchType", "BRANCH")
        msg.reference_branch_name = m.reference_branch_name
        msg.scm_revision_id = m.scm_revision_id
        msg.projectVersion = m.project_version
        for profile in m.qprofiles:
            entry = msg.qprofiles_per_language[profile.language]
            entry.key = profile.key
            entry.name = profile.name
            entry.language = profile.language
            entry.rulesUpdatedAt = profile.rules_updated_at
        plugin = msg.plugins_by_key[PLUGIN_KEY]
        plugin.key = PLUGIN_KEY
        plugin.updatedAt = m.analysis_date
        for language, count in m.file_count_per_language:
            msg.analyzed_indexed_file_count_per_type[language] = count
        return msg

    def _component(self, c: ReportComponent) -> Message:
        msg = self.schema.message("Component")()
        msg.ref = c.ref
        msg.type = self.schema.enum_value("Component.ComponentType", c.type)
        if c.key:
            msg.key = c.key
        if c.name:
            msg.name = c.name
        if c.type == "FILE":
            msg.language = c.language
            msg.lines = c.lines
            msg.status = self.schema.enum_value("Component.FileStatus", "ADDED")
        if c.path:
            msg.project_relative_path = c.path
        msg.child_ref.extend(c.child_refs)
        return msg

    def _issue(self, i: ReportIssue) -> Message:
        msg = self.schema.message("Issue")()
        msg.rule_repository = i.rule_repository
        msg.rule_key = i.rule_key
        msg.msg = i.message
        msg.overridden_severity = self.schema.enum_value("Severity", i.severity)
        if i.text_range is not None:
            msg.text_range.start_line = i.text_range.start_line
            msg.text_range.end_line = i.text_range.end_line
            msg.text_range.start_offset = i.text_range.start_offset
            msg.text_range.end_offset = i.text_range.end_offset
        return msg

    def _measure(self, m: ReportMeasure) -> Message:
        msg = self.schema.message("Measure")()
        msg.metric_key = m.metric_key
        getattr(msg, f"{m.kind}_value").value = m.value
        return msg

    def _active_rule(self, r: ReportActiveRule) -> Message:
        msg = self.schema.message("ActiveRule")()
        msg.rule_repository = r.rule_repository
        msg.rule_key = r.rule_key
        msg.severity = self.schema.enum_value("Severity", r.severity)
        for key, value in r.params:
            msg.params_by_key[key] = value
        msg.created_at = r.created_at
        msg.updated_at = r.updated_at
        msg.q_profile_key = r.q_profile_key
        return msg

    def _changesets(self, c: ReportChangeset) -> Message:
        msg = self.schema.message("Changesets")()
        msg.component_ref = c.component_ref
        changeset = msg.changeset.add()
        changeset.revision = c.revision
        changeset.author = c.author
        changeset.date = c.date
        msg.changesetIndexByLine.extend([0] * c.line_count)
        return msg

    def encode(self, report: ReportModel) -> EncodedReport:
        try:
            encoded = EncodedReport(metadata=_serialize(self._metadata(report.metadata)))
            for component in report.components:
                encoded.components[component.ref] = _serialize(self._component(component))

            by_ref: dict[int, list[Message]] = {}
            for issue in report.issues:
                by_ref.setdefault(issue.component_ref, []).append(self._issue(issue))
            encoded.issues = {ref: _delimited(msgs) for ref, msgs in by_ref.items()}

            by_ref = {}
            for measure in report.measures:
                by_ref.setdefault(measure.component_ref, []).append(self._measure(measure))
            encoded.measures = {ref: _delimited(msgs) for ref, msgs in by_ref.items()}

            encoded.sources = {s.component_ref: s.text for s in report.sources}
            encoded.active_rules = _delimited(self._active_rule(r) for r in report.active_rules)
            encoded.changesets = {c.component_ref: _serialize(self._changesets(c)) for c in report.changesets}
        except (TypeError, ValueError, AttributeError) as e:
            raise EncodingError.encode_failed("report", str(e)) from e

        log.debug(
            "report_encoded",
            components=len(encoded.components),
            issue_files=len(encoded.issues),
            sources=len(encoded.sources),
        )
        return encoded

    def bundle(self, report: ReportModel) -> bytes:
        """Encode and pack into the ZIP consumed by the submit endpoint."""
        return pack_bundle(self.encode(report))


def pack_bundle(encoded: EncodedReport) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in encoded.entries():
            info = zipfile.ZipInfo(name, date_time=_ZIP_DATE)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, data)
    return buf.getvalue()
