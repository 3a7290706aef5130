"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (SONARFERRY__SECTION__KEY)
3. YAML config file
4. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

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
from sonarferry.core.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("sonarferry.yaml")


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level YAML value must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source."""

    class SonarFerrySettings(BaseSettings):
        """Root config. Env vars: SONARFERRY__SOURCE__TOKEN, SONARFERRY__TRANSFER__MODE, etc."""

        model_config = SettingsConfigDict(
            env_prefix="SONARFERRY__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        source: SourceConfig = SourceConfig()
        destination: DestinationConfig = DestinationConfig()
        transfer: TransferConfig = TransferConfig()
        performance: PerformanceConfig = PerformanceConfig()
        rate_limit: RateLimitConfig = RateLimitConfig()
        timeouts: TimeoutsConfig = TimeoutsConfig()
        sync: SyncConfig = SyncConfig()
        logging: LoggingConfig = LoggingConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return SonarFerrySettings


def load_config(config_path: Path | None = None, **kwargs: Any) -> SonarFerryConfig:
    """Load config: defaults < YAML file < env vars < kwargs.

    Args:
        config_path: YAML file. An explicit path must exist; when omitted,
                     ./sonarferry.yaml is read if present.
        **kwargs: Section overrides, e.g. ``transfer={"mode": "full"}``.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On missing explicit file, invalid YAML or validation errors.
    """
    if config_path is not None and not config_path.exists():
        raise ConfigError.file_not_found(str(config_path))

    yaml_config = _load_yaml(config_path or DEFAULT_CONFIG_PATH)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
        return SonarFerryConfig.model_validate(settings.model_dump())
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def resolve_state_file(config: SonarFerryConfig) -> Path:
    """State file path, with ``{project}`` expanded to the source project key."""
    raw = config.transfer.state_file.replace("{project}", config.source.project_key)
    return Path(raw).expanduser()
