"""Logging setup for migration runs.

Every event goes through structlog into the stdlib root logger, so a run can
log human-readable lines to the terminal while a JSON file at DEBUG keeps
the full API trace. Events emitted during ``migrate_project`` carry a
``run_id`` so interleaved projects in one log file can be told apart. The
first file output is remembered so the CLI can point at it after a failure.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from sonarferry.config.models import LoggingConfig, LogOutputConfig

_CONSOLE_STREAMS = ("stderr", "stdout")

# Chatty third-party loggers that only matter when they fail
_QUIET_LOGGERS = ("httpx", "httpcore")

_current_run: ContextVar[str | None] = ContextVar("sonarferry_run_id", default=None)
_log_file: Path | None = None


def get_run_id() -> str | None:
    return _current_run.get()


def set_run_id(run_id: str | None = None) -> str:
    """Tag subsequent events in this context with ``run_id`` (12 hex chars if omitted)."""
    value = run_id or uuid4().hex[:12]
    _current_run.set(value)
    return value


def clear_run_id() -> None:
    _current_run.set(None)


def get_log_file_path() -> Path | None:
    """File the last ``configure_logging`` call writes to, if any."""
    return _log_file


def _stamp_run(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    run_id = _current_run.get()
    if run_id is not None:
        event_dict["run_id"] = run_id
    return event_dict


def _level_number(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


def _renderer(output: LogOutputConfig) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=output.destination in _CONSOLE_STREAMS and getattr(sys, output.destination).isatty(),
        pad_event_to=0,
        pad_level=False,
    )


def _handler(output: LogOutputConfig) -> logging.Handler:
    if output.destination in _CONSOLE_STREAMS:
        # Looked up per call so redirected streams are honoured
        return logging.StreamHandler(getattr(sys, output.destination))
    path = Path(output.destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog events to the outputs in ``config``.

    Without ``config`` a single stderr output is used, rendered as JSON
    when ``json_format`` is set. Calling this again replaces every handler
    installed by the previous call.
    """
    global _log_file
    from sonarferry.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level.upper(),  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level_number(config.level, logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _stamp_run,
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Loggers bound at import time must pick up a later reconfiguration
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        if isinstance(old, logging.FileHandler):
            old.close()
    root.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _log_file = None
    for output in config.outputs:
        if output.destination not in _CONSOLE_STREAMS and _log_file is None:
            _log_file = Path(output.destination)
        handler = _handler(output)
        handler.setLevel(_level_number(output.level, root_level))
        formatter = structlog.stdlib.ProcessorFormatter(processor=_renderer(output), foreign_pre_chain=pre_chain)
        handler.setFormatter(formatter)
        root.addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    return logger.bind(logger=name) if name else logger  # type: ignore[no-any-return]
