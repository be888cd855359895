"""Shared fixtures: isolated data dir/environment and an in-memory HTTP session."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

_ENV_VARS = (
    "BUILDKITE_ORGANIZATION",
    "BUILDKITE_USER",
    "BUILDKITE_TOKEN",
    "TEAMCITY_URL",
    "TEAMCITY_USER",
    "TEAMCITY_PASSWORD",
    "TEAMCITY_TOKEN",
    "TEAMCITY_SUPERUSER_TOKEN",
    "DOCKER_HOST",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.ci_runbooks and from the caller's CI credentials."""
    monkeypatch.setenv("CI_RUNBOOKS_DATA_DIR", str(tmp_path / "data"))
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def make_response(
    status: int = 200,
    json_body: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = "http://test.invalid/",
) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    r = requests.Response()
    r.status_code = status
    r.url = url
    r.reason = "Test"
    r.encoding = "utf-8"
    if json_body is not None:
        r._content = json.dumps(json_body).encode("utf-8")
        r.headers["Content-Type"] = "application/json"
    elif text is not None:
        r._content = text.encode("utf-8")
    else:
        r._content = b""
    r.headers.update(headers or {})
    return r


class FakeSession:
    """Stand-in for requests.Session that replays canned responses.

    Routes are keyed by method, URL and (optionally) query params. When a
    route has several responses they are served in order and the last one
    repeats.
    """

    def __init__(self) -> None:
        self.routes: Dict[tuple, List[Any]] = {}
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    @staticmethod
    def _key(method: str, url: str, params: Optional[Dict[str, Any]]) -> tuple:
        return method.upper(), url, tuple(sorted((params or {}).items()))

    def add(self, method: str, url: str, *responses: Any, params: Optional[Dict[str, Any]] = None) -> None:
        self.routes[self._key(method, url, params)] = list(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"method": method.upper(), "url": url, **kwargs})
        key = self._key(method, url, kwargs.get("params"))
        queue = self.routes.get(key)
        if not queue:
            raise AssertionError(f"unexpected request {key}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def response():
    """Factory fixture for canned responses."""
    return make_response


@pytest.fixture
def no_sleep(monkeypatch):
    """Make retry backoff and polling loops instantaneous, recording requested sleeps."""
    import time

    slept: List[float] = []
    monkeypatch.setattr(time, "sleep", lambda seconds: slept.append(seconds))
    return slept


@pytest.fixture
def config_file(tmp_path) -> Path:
    """Write a complete config.yaml and return its path."""
    path = tmp_path / "config" / "config.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(
        "buildkite:\n"
        "  api_url: \"https://api.buildkite.com/v2\"\n"
        "  organization: \"\"\n"
        "  token_env: \"BUILDKITE_TOKEN\"\n"
        "teamcity:\n"
        "  url: \"http://teamcity.test:8111\"\n"
        "  port: 8111\n"
        "  user: \"admin\"\n"
        "  password: \"admin\"\n"
        "  compose_file: \"\"\n"
        "  server_service: \"teamcity-server\"\n"
        "  url_wait_secs: 60\n"
        "  max_wait_secs: 300\n"
        "  poll_interval: 3\n"
        "http:\n"
        "  timeout: 5\n"
        "  max_retries: 3\n"
        "  rps: 1000\n",
        encoding="utf-8",
    )
    return path
