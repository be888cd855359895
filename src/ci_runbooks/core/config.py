"""Configuration management for the YAML config file."""

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .paths import get_data_dir, get_system_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = get_data_dir() / "config"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"
_TEMPLATE_CONFIG = get_system_path("config", "config.yaml")

_DEFAULT_CONFIG_TEMPLATE = """# Auto-generated default configuration for ci-runbooks
buildkite:
  api_url: "https://api.buildkite.com/v2"
  organization: ""
  token_env: "BUILDKITE_TOKEN"

teamcity:
  url: "http://localhost:8111"
  port: 8111
  user: "admin"
  password: "admin"
  compose_file: ""
  server_service: "teamcity-server"
  url_wait_secs: 60
  max_wait_secs: 300
  poll_interval: 3

http:
  timeout: 30
  max_retries: 3
  rps: 5.0
"""

REQUIRED_SECTIONS = ("buildkite", "teamcity", "http")
_POSITIVE_NUMBERS = {
    "teamcity": ("port", "url_wait_secs", "max_wait_secs", "poll_interval"),
    "http": ("timeout", "max_retries", "rps"),
}


def _write_template(path: Path, content: str) -> None:
    """Write templated YAML content to disk with a trailing newline."""
    path.write_text(content.strip() + "\n", encoding="utf-8")


class ConfigManager:
    """Manages loading and validation of the YAML configuration file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the manager and ensure a baseline config file exists."""
        path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.is_absolute():
            path = path.resolve()
        self.config_path = str(path)
        self.base_dir = str(path.parent)
        self._config = None
        self._ensure_default_config()

    def load_config(self) -> Dict[str, Any]:
        """Load the main configuration file."""
        if self._config is None:
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config = yaml.safe_load(f) or {}
                logger.debug(f"Loaded configuration from {self.config_path}")
            except Exception as e:
                logger.error(f"Failed to load config from {self.config_path}: {e}")
                raise

        return self._config

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level section of the config, or an empty dict."""
        section = self.load_config().get(name)
        return section if isinstance(section, dict) else {}

    def _ensure_default_config(self) -> None:
        """Create the default configuration file if it is missing."""
        config_file = Path(self.config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        if config_file.exists():
            return
        if _TEMPLATE_CONFIG.exists():
            try:
                shutil.copyfile(_TEMPLATE_CONFIG, config_file)
                logger.info("Created default config.yaml at %s", config_file)
                return
            except OSError as exc:
                logger.warning("Failed to copy template config: %s", exc)
        _write_template(config_file, _DEFAULT_CONFIG_TEMPLATE)
        logger.info("Created fallback default config.yaml at %s", config_file)

    def validate_config(self) -> bool:
        """Validate the configuration file."""
        try:
            config = self.load_config()
            if not isinstance(config, dict):
                logger.error("Top level of config.yaml must be a mapping")
                return False

            for section in REQUIRED_SECTIONS:
                if section not in config:
                    logger.error(f"Missing required section '{section}' in main config")
                    return False
                if not isinstance(config[section], dict):
                    logger.error(f"Section '{section}' must be a mapping")
                    return False

            for section, keys in _POSITIVE_NUMBERS.items():
                for key in keys:
                    value = config[section].get(key)
                    if value is None:
                        continue
                    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                        logger.error(f"'{section}.{key}' must be a positive number")
                        return False

            api_url = config['buildkite'].get('api_url')
            if api_url and not str(api_url).startswith(("http://", "https://")):
                logger.error("'buildkite.api_url' must be an http(s) URL")
                return False

            logger.debug("Configuration validation passed")
            return True

        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONFIG_DIR",
]
