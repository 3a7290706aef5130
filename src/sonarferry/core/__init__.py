"""Core module exports."""

from sonarferry.core.errors import (
    AnalysisError,
    AuthenticationError,
    ConfigError,
    DestinationApiError,
    EncodingError,
    ErrorCode,
    InternalError,
    SonarFerryError,
    SourceApiError,
    StateError,
    TransferError,
)
from sonarferry.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)

__all__ = [
    # Errors
    "SonarFerryError",
    "ErrorCode",
    "AnalysisError",
    "AuthenticationError",
    "ConfigError",
    "DestinationApiError",
    "EncodingError",
    "InternalError",
    "SourceApiError",
    "StateError",
    "TransferError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
]
