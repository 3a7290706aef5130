"""Config module exports."""

from sonarferry.config.loader import load_config, resolve_state_file
from sonarferry.config.models import (
    DestinationConfig,
    LoggingConfig,
    PerformanceConfig,
    RateLimitConfig,
    SonarFerryConfig,
    SourceConfig,
    SyncConfig,
    TimeoutsConfig,
    TransferConfig,
)

__all__ = [
    "load_config",
    "resolve_state_file",
    "SonarFerryConfig",
    "SourceConfig",
    "DestinationConfig",
    "TransferConfig",
    "PerformanceConfig",
    "RateLimitConfig",
    "TimeoutsConfig",
    "SyncConfig",
    "LoggingConfig",
]
