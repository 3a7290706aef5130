"""Scanner report schema loading.

The schema ships as a text-format ``FileDescriptorSet`` resource. Two
strategies read that resource: through ``importlib.resources`` (works from
wheels and zip imports) and directly from the file next to this module.
Both feed the same text into a fresh descriptor pool, so either yields an
identical ``ReportSchema``. The schema is loaded lazily, once per process.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

import structlog
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, text_format
from google.protobuf.message import Message

from sonarferry.core.errors import EncodingError

log = structlog.get_logger(__name__)

SCHEMA_RESOURCE = "scanner_report.textproto"
MESSAGE_TYPES = ("Metadata", "Component", "Issue", "Measure", "ActiveRule", "Changesets", "TextRange")
ENUM_TYPES = ("Severity", "Component.ComponentType", "Component.FileStatus", "Metadata.BranchType")

SchemaSource = Callable[[], str]


def read_package_resource() -> str:
    """Read the schema text via importlib.resources."""
    return resources.files("sonarferry.report").joinpath("schema", SCHEMA_RESOURCE).read_text(encoding="utf-8")


def read_module_file() -> str:
    """Read the schema text from the directory beside this module."""
    return (Path(__file__).parent / "schema" / SCHEMA_RESOURCE).read_text(encoding="utf-8")


DEFAULT_STRATEGIES: tuple[SchemaSource, ...] = (read_package_resource, read_module_file)


@dataclass(frozen=True)
class ReportSchema:
    """Resolved message classes and enum descriptors, looked up by name."""

    pool: descriptor_pool.DescriptorPool
    messages: dict[str, type[Message]]

    def message(self, name: str) -> type[Message]:
        try:
            return self.messages[name]
        except KeyError:
            raise EncodingError.schema_load_failed(f"unknown message type {name}") from None

    def enum_value(self, enum_name: str, value_name: str) -> int:
        """Numeric value of ``value_name`` in enum ``enum_name`` (e.g. ``Severity``, ``MAJOR``)."""
        enum = self.pool.FindEnumTypeByName(enum_name)
        try:
            return enum.values_by_name[value_name].number
        except KeyError:
            raise EncodingError.encode_failed(enum_name, f"no enum value {value_name}") from None


def parse_schema(text: str) -> ReportSchema:
    """Build a ReportSchema from text-format FileDescriptorSet content."""
    file_set = descriptor_pb2.FileDescriptorSet()
    text_format.Parse(text, file_set)

    pool = descriptor_pool.DescriptorPool()
    for file_proto in file_set.file:
        pool.AddSerializedFile(file_proto.SerializeToString())

    messages = {name: message_factory.GetMessageClass(pool.FindMessageTypeByName(name)) for name in MESSAGE_TYPES}
    for enum_name in ENUM_TYPES:
        pool.FindEnumTypeByName(enum_name)
    return ReportSchema(pool=pool, messages=messages)


def load_schema_with(strategies: tuple[SchemaSource, ...] = DEFAULT_STRATEGIES) -> ReportSchema:
    """Try each strategy in order; the first that yields a schema wins."""
    errors: list[str] = []
    for strategy in strategies:
        try:
            text = strategy()
        except (OSError, ModuleNotFoundError, TypeError) as e:
            log.debug("schema_strategy_unavailable", strategy=strategy.__name__, error=str(e))
            errors.append(f"{strategy.__name__}: {e}")
            continue
        try:
            schema = parse_schema(text)
        except (text_format.ParseError, TypeError, KeyError) as e:
            errors.append(f"{strategy.__name__}: {e}")
            continue
        log.debug("schema_loaded", strategy=strategy.__name__)
        return schema
    raise EncodingError.schema_load_failed("; ".join(errors) or "no schema strategy configured")


@functools.cache
def get_schema() -> ReportSchema:
    """Process-wide schema, loaded on first use."""
    return load_schema_with()
