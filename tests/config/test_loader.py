"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- load_config() precedence: defaults < YAML < env < kwargs
- resolve_state_file()
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from sonarferry.config.loader import _load_yaml, load_config, resolve_state_file
from sonarferry.core.errors import ConfigError, ErrorCode


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("source:\n  project_key: billing\n")

        assert _load_yaml(yaml_file) == {"source": {"project_key": "billing"}}

    def test_returns_empty_for_empty_file(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")

        assert _load_yaml(yaml_file) == {}

    def test_raises_on_invalid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("source: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            _load_yaml(yaml_file)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_raises_on_non_mapping(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            _load_yaml(yaml_file)


class TestLoadConfig:
    @pytest.fixture(autouse=True)
    def _isolate(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        for name in list(os.environ):
            if name.upper().startswith("SONARFERRY__"):
                monkeypatch.delenv(name)

    def test_defaults_without_file(self) -> None:
        config = load_config()

        assert config.transfer.mode == "incremental"
        assert config.destination.url == "https://sonarcloud.io"
        assert config.performance.hotspot_sync == 3

    def test_explicit_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path / "missing.yaml")
        assert exc_info.value.code == ErrorCode.CONFIG_FILE_NOT_FOUND

    def test_yaml_values_are_applied(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text(
            "source:\n"
            "  url: http://sq.internal:9000/\n"
            "  project_key: billing\n"
            "destination:\n"
            "  organization: acme\n"
            "transfer:\n"
            "  mode: full\n"
            "  exclude_branches: [develop]\n"
        )

        config = load_config(path)

        assert config.source.url == "http://sq.internal:9000"
        assert config.transfer.mode == "full"
        assert config.transfer.exclude_branches == ["develop"]
        assert config.destination_project_key == "billing"

    def test_default_file_in_cwd_is_read(self, tmp_path: Path) -> None:
        (tmp_path / "sonarferry.yaml").write_text("destination:\n  organization: from-cwd\n")
        assert load_config().destination.organization == "from-cwd"

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("transfer:\n  mode: full\n  batch_size: 50\n")
        monkeypatch.setenv("SONARFERRY__TRANSFER__MODE", "incremental")

        config = load_config(path)

        assert config.transfer.mode == "incremental"
        assert config.transfer.batch_size == 50

    def test_kwargs_override_everything(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("transfer:\n  mode: incremental\n  batch_size: 50\n")
        monkeypatch.setenv("SONARFERRY__TRANSFER__BATCH_SIZE", "75")

        config = load_config(path, transfer={"mode": "full"})

        assert config.transfer.mode == "full"
        assert config.transfer.batch_size == 75

    def test_invalid_value_raises_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("transfer:\n  mode: sideways\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE
        assert "transfer" in exc_info.value.details["field"]

    def test_explicit_destination_project_key(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("source:\n  project_key: billing\ndestination:\n  project_key: acme_billing\n")
        assert load_config(path).destination_project_key == "acme_billing"


class TestResolveStateFile:
    def test_expands_project_placeholder(self, tmp_path: Path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("source:\n  project_key: billing\ntransfer:\n  state_file: /tmp/sf/{project}.json\n")
        assert resolve_state_file(load_config(path)) == Path("/tmp/sf/billing.json")
