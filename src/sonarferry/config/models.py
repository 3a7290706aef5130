"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (SONARFERRY__SECTION__KEY)
3. YAML config file (--config, or ./sonarferry.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    SONARFERRY__<SECTION>__<KEY>=<VALUE>

Examples:
    SONARFERRY__SOURCE__TOKEN=squ_xxx
    SONARFERRY__DESTINATION__ORGANIZATION=acme
    SONARFERRY__TRANSFER__MODE=full
    SONARFERRY__PERFORMANCE__ISSUE_SYNC=8
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
TransferMode = Literal["full", "incremental"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        SONARFERRY__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every API call.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


def _strip_trailing_slash(v: str) -> str:
    return v.rstrip("/")


class SourceConfig(BaseModel):
    """Self-hosted SonarQube server.

    Env vars:
        SONARFERRY__SOURCE__URL, SONARFERRY__SOURCE__TOKEN, SONARFERRY__SOURCE__PROJECT_KEY
    """

    url: str = "http://localhost:9000"
    token: str = ""
    project_key: str = ""

    @field_validator("url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        return _strip_trailing_slash(v)


class DestinationConfig(BaseModel):
    """SonarCloud organization and target project.

    Env vars:
        SONARFERRY__DESTINATION__URL, SONARFERRY__DESTINATION__TOKEN,
        SONARFERRY__DESTINATION__ORGANIZATION, SONARFERRY__DESTINATION__PROJECT_KEY
    """

    url: str = "https://sonarcloud.io"
    token: str = ""
    organization: str = ""
    project_key: str = Field(
        default="",
        description="Destination project key. Empty means reuse the source project key.",
    )

    @field_validator("url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        return _strip_trailing_slash(v)


class TransferConfig(BaseModel):
    """Report transfer behaviour.

    Env vars:
        SONARFERRY__TRANSFER__MODE: full | incremental
        SONARFERRY__TRANSFER__STATE_FILE: Where incremental progress is recorded
    """

    mode: TransferMode = Field(
        default="incremental",
        description="incremental skips branches already recorded as completed in the state file.",
    )
    state_file: str = Field(
        default=".sonarferry/state.json",
        description="Transfer state file. Only read and written in incremental mode.",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Source files fetched per extraction batch.",
    )
    sync_all_branches: bool = Field(
        default=True,
        description="Transfer every branch. False transfers the main branch only.",
    )
    exclude_branches: list[str] = Field(default_factory=list)
    include_branches: list[str] | None = Field(
        default=None,
        description="Whitelist of branches. Must contain the main branch, "
        "otherwise the whole project is skipped.",
    )


class PerformanceConfig(BaseModel):
    """Worker pool widths.

    Env vars:
        SONARFERRY__PERFORMANCE__SOURCE_EXTRACTION, SONARFERRY__PERFORMANCE__HOTSPOT_EXTRACTION,
        SONARFERRY__PERFORMANCE__ISSUE_SYNC, SONARFERRY__PERFORMANCE__HOTSPOT_SYNC
    """

    source_extraction: int = Field(default=10, ge=1, le=50)
    hotspot_extraction: int = Field(default=10, ge=1, le=50)
    issue_sync: int = Field(default=5, ge=1, le=20)
    hotspot_sync: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Lower default: hotspot endpoints are rate limited more aggressively.",
    )


class RateLimitConfig(BaseModel):
    """Retry and throttling for destination calls.

    Env vars:
        SONARFERRY__RATE_LIMIT__MAX_RETRIES: Retries on 429/503 (0 disables)
        SONARFERRY__RATE_LIMIT__BASE_DELAY_SEC: First retry delay, doubled each retry
        SONARFERRY__RATE_LIMIT__MIN_REQUEST_INTERVAL_SEC: Minimum gap between POSTs
    """

    max_retries: int = Field(default=3, ge=0, le=20)
    base_delay_sec: float = Field(default=1.0, ge=0.0, le=60.0)
    min_request_interval_sec: float = Field(default=0.0, ge=0.0, le=10.0)


class TimeoutsConfig(BaseModel):
    """Network and background-task timeouts."""

    request_sec: float = Field(default=60.0, gt=0)
    analysis_wait_sec: float = Field(
        default=300.0,
        gt=0,
        description="Max wait for destination-side processing when --wait is used.",
    )
    analysis_poll_sec: float = Field(default=2.0, gt=0)


class SyncConfig(BaseModel):
    """Issue and hotspot reconciliation options."""

    skip_issue_sync: bool = False
    skip_hotspot_sync: bool = False
    replay_changelog: bool = Field(
        default=False,
        description="Replay the source issue changelog instead of a single status transition.",
    )
    dedupe_comments: bool = Field(
        default=True,
        description="Record replayed comments in the state file and never post them twice. Incremental mode only.",
    )


class SonarFerryConfig(BaseModel):
    """Root configuration model."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    destination: DestinationConfig = Field(default_factory=DestinationConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def destination_project_key(self) -> str:
        return self.destination.project_key or self.source.project_key
