"""
Thin wrapper around the docker-compose command line.

Supports both the standalone ``docker-compose`` binary and the ``docker
compose`` CLI plugin. The compose file is passed to every invocation through
the ``COMPOSE_FILE`` environment variable.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import yaml

logger = logging.getLogger(__name__)


def _find_compose_command() -> List[str]:
    if shutil.which("docker-compose"):
        return ["docker-compose"]
    if shutil.which("docker"):
        probe = subprocess.run(["docker", "compose", "version"], capture_output=True, text=True)
        if probe.returncode == 0:
            return ["docker", "compose"]
    raise RuntimeError(
        "docker-compose not found: install docker-compose or the docker compose CLI plugin"
    )


class DockerCompose:
    """Run docker-compose actions against a single compose file.

    Args:
        compose_file: Path to the compose YAML
        command: Base command (auto-detected when None)
        runner: ``subprocess.run`` compatible callable, injectable for tests
    """

    def __init__(
        self,
        compose_file: Path | str,
        *,
        command: Optional[Sequence[str]] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.compose_file = Path(compose_file)
        self.command = list(command) if command else _find_compose_command()
        self.runner = runner

    def _env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["COMPOSE_FILE"] = str(self.compose_file)
        return env

    def _run(self, *args: str, capture: bool = False, check: bool = True) -> subprocess.CompletedProcess:
        cmd = [*self.command, *args]
        logger.debug("running: %s", " ".join(cmd))
        return self.runner(
            cmd,
            env=self._env(),
            check=check,
            capture_output=capture,
            text=True,
        )

    def run(self, action: str, *args: str) -> int:
        """Pass *action* and *args* straight through to docker-compose."""
        return self._run(action, *args).returncode

    def up(self, *args: str) -> int:
        return self.run("up", "-d", *args)

    def down(self, *args: str) -> int:
        return self.run("down", *args)

    def logs(self, service: str) -> str:
        """Return the combined log output of *service*, '' if logs are unavailable."""
        try:
            result = self._run("logs", service, capture=True, check=False)
        except OSError as e:
            logger.debug("docker-compose logs %s failed: %s", service, e)
            return ""
        return (result.stdout or "") + (result.stderr or "")

    def config(self) -> Dict[str, Any]:
        """Return the resolved compose configuration as parsed YAML."""
        result = self._run("config", capture=True)
        return yaml.safe_load(result.stdout) or {}

    def expected_agents(self) -> List[str]:
        """Return the AGENT_NAME of every service that declares one."""
        agents = []
        services = self.config().get("services") or {}
        for service in services.values():
            environment = (service or {}).get("environment") or {}
            if isinstance(environment, list):
                pairs = (item.split("=", 1) for item in environment if "=" in str(item))
                environment = {k: v for k, v in pairs}
            name = environment.get("AGENT_NAME")
            if name is not None and str(name).strip():
                agents.append(str(name).strip())
        return agents


__all__ = ["DockerCompose"]
