"""
Command context for shared initialization across CLI commands.

Provides a unified way to load config and build API clients so that every
command resolves settings the same way: explicit argument, then environment
variable, then config file, then built-in default.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

from .apis import BUILDKITE_API, BuildkiteClient, TeamCityClient
from .config import ConfigManager
from .http_client import RetryableHTTPClient
from .paths import ensure_data_dir, get_system_path, resolve_data_file

logger = logging.getLogger(__name__)

DEFAULT_TEAMCITY_PORT = 8111
COMPOSE_FILENAME = "teamcity-docker-compose.yml"


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def docker_host_name(docker_host: Optional[str]) -> str:
    """Return the hostname part of $DOCKER_HOST, or 'localhost'.

    Accepts both bare hostnames and URLs such as ``tcp://192.168.99.100:2376``;
    unix sockets mean the daemon is local.
    """
    if not docker_host:
        return "localhost"
    if "://" not in docker_host:
        return docker_host.split(":", 1)[0] or "localhost"
    parsed = urlparse(docker_host)
    if parsed.scheme in ("unix", "npipe"):
        return "localhost"
    return parsed.hostname or "localhost"


class CommandContext:
    """Encapsulates shared initialization logic for CLI commands.

    Example:
        ```python
        ctx = CommandContext(config_path)
        client = ctx.teamcity_client()
        for vcs_root_id, name in client.list_vcs_roots():
            ...
        ```
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize command context with validated config.

        Raises:
            ValueError: If configuration is invalid
        """
        self.config_manager = ConfigManager(config_path)

        if not self.config_manager.validate_config():
            raise ValueError("Invalid configuration. Run 'ci-runbooks status' for details.")

        self.config = self.config_manager.load_config()
        logger.debug(f"CommandContext initialized with config from {self.config_manager.config_path}")

    def setting(self, section: str, key: str, default: Any = None, env: Optional[str] = None) -> Any:
        """Resolve one setting from the environment, then config, then *default*."""
        if env:
            value = _env(env)
            if value is not None:
                return value
        value = self.config_manager.get_section(section).get(key)
        if value is None or value == "":
            return default
        return value

    def http_client(self) -> RetryableHTTPClient:
        return RetryableHTTPClient(
            rps=float(self.setting("http", "rps", 5.0)),
            max_retries=int(self.setting("http", "max_retries", 3)),
            timeout=int(self.setting("http", "timeout", 30)),
        )

    # buildkite

    def buildkite_organization(self, organization: Optional[str] = None) -> Optional[str]:
        return (
            organization
            or _env("BUILDKITE_ORGANIZATION")
            or _env("BUILDKITE_USER")
            or self.setting("buildkite", "organization")
        )

    def buildkite_client(self, http: Optional[RetryableHTTPClient] = None) -> BuildkiteClient:
        """Build a BuildKite client; pass the command's open *http* client so its session gets closed."""
        token_env = self.setting("buildkite", "token_env", "BUILDKITE_TOKEN")
        token = _env(token_env)
        if not token:
            raise ValueError(f"BuildKite API token not set, export ${token_env}")
        return BuildkiteClient(
            token,
            http=http if http is not None else self.http_client(),
            api_url=self.setting("buildkite", "api_url", BUILDKITE_API),
        )

    # teamcity

    def teamcity_url(self) -> str:
        return self.setting("teamcity", "url", f"http://localhost:{DEFAULT_TEAMCITY_PORT}", env="TEAMCITY_URL")

    def cluster_url(self) -> str:
        """URL of the local docker cluster, built only from $DOCKER_HOST so it never targets a real server."""
        port = int(self.setting("teamcity", "port", DEFAULT_TEAMCITY_PORT))
        return f"http://{docker_host_name(_env('DOCKER_HOST'))}:{port}"

    def teamcity_credentials(self) -> tuple[str, str]:
        user = self.setting("teamcity", "user", "admin", env="TEAMCITY_USER")
        password = self.setting("teamcity", "password", "admin", env="TEAMCITY_PASSWORD")
        return str(user), str(password)

    def teamcity_client(
        self,
        url: Optional[str] = None,
        *,
        superuser_token: Optional[str] = None,
        http: Optional[RetryableHTTPClient] = None,
    ) -> TeamCityClient:
        user, password = self.teamcity_credentials()
        return TeamCityClient(
            url or self.teamcity_url(),
            user=user,
            password=password,
            token=_env("TEAMCITY_TOKEN"),
            superuser_token=superuser_token or _env("TEAMCITY_SUPERUSER_TOKEN"),
            http=http if http is not None else self.http_client(),
        )

    def compose_file(self) -> Path:
        configured = self.setting("teamcity", "compose_file")
        if configured:
            return resolve_data_file(str(configured))
        seeded = ensure_data_dir() / "compose" / COMPOSE_FILENAME
        if seeded.exists():
            return seeded
        return get_system_path("compose", COMPOSE_FILENAME)
