"""Scanner report model, builder and wire encoder."""

from sonarferry.report.builder import BuildTarget, ReportBuilder
from sonarferry.report.encoder import EncodedReport, ReportEncoder, pack_bundle
from sonarferry.report.models import ReportModel
from sonarferry.report.schema import ReportSchema, get_schema

__all__ = [
    "BuildTarget",
    "ReportBuilder",
    "EncodedReport",
    "ReportEncoder",
    "pack_bundle",
    "ReportModel",
    "ReportSchema",
    "get_schema",
]
