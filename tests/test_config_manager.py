"""Tests for configuration management defaults and validation."""

from __future__ import annotations

import yaml

from ci_runbooks.core.config import ConfigManager


def test_config_manager_creates_defaults(tmp_path):
    """When pointed at an empty directory, a default config file is created."""

    config_path = tmp_path / "config.yaml"
    assert not config_path.exists()

    cfg = ConfigManager(str(config_path))

    assert config_path.exists(), "config.yaml should be created on first run"

    data = cfg.load_config()
    assert isinstance(data, dict)
    assert data["buildkite"]["api_url"] == "https://api.buildkite.com/v2"
    assert data["teamcity"]["max_wait_secs"] == 300
    assert cfg.validate_config()


def test_existing_config_is_not_overwritten(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "buildkite:\n  organization: acme\nteamcity: {}\nhttp: {}\n",
        encoding="utf-8",
    )

    cfg = ConfigManager(str(config_path))

    assert cfg.get_section("buildkite") == {"organization": "acme"}
    assert cfg.validate_config()


def test_get_section_tolerates_missing_and_scalar_sections(config_file):
    config_file.write_text("buildkite: nope\nteamcity: {}\nhttp: {}\n", encoding="utf-8")
    cfg = ConfigManager(str(config_file))

    assert cfg.get_section("buildkite") == {}
    assert cfg.get_section("does-not-exist") == {}


def test_validate_config_rejects_missing_section(config_file):
    data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    del data["http"]
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")

    assert not ConfigManager(str(config_file)).validate_config()


def test_validate_config_rejects_non_positive_numbers(config_file):
    data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    data["teamcity"]["poll_interval"] = 0
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")

    assert not ConfigManager(str(config_file)).validate_config()


def test_validate_config_rejects_bad_api_url(config_file):
    data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    data["buildkite"]["api_url"] = "api.buildkite.com"
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")

    assert not ConfigManager(str(config_file)).validate_config()


def test_validate_config_reports_unparseable_yaml(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("buildkite: [unclosed\n", encoding="utf-8")

    assert not ConfigManager(str(config_path)).validate_config()
