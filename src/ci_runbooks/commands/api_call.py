"""Make a single authenticated call to the BuildKite or TeamCity API."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..core.command_context import CommandContext

logger = logging.getLogger(__name__)

PLATFORMS = ("buildkite", "teamcity")


def _decode(body: Optional[str]) -> Any:
    if body is None:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body


def run(
    config_path: Optional[str],
    platform: str,
    path: str,
    *,
    method: str = "GET",
    data: Optional[str] = None,
) -> Any:
    """Call *path* on *platform* with the configured credentials.

    Args:
        config_path: Path to the main configuration file
        platform: ``buildkite`` or ``teamcity``
        path: API path, relative to the API root (``/app/rest`` on TeamCity)
        method: HTTP verb
        data: Optional request body; sent as JSON when it is a JSON object or array, else as text

    Returns:
        Decoded JSON response, or the raw text when the body is not JSON
    """
    if platform not in PLATFORMS:
        raise ValueError(f"Unknown platform '{platform}', expected one of: {', '.join(PLATFORMS)}")

    ctx = CommandContext(config_path)
    payload = _decode(data)
    method = method.upper()
    logger.debug("%s %s %s", platform, method, path)

    with ctx.http_client() as http:
        if platform == "buildkite":
            return ctx.buildkite_client(http).request(method, path, json=payload)

        client = ctx.teamcity_client(http=http)
        if data is not None and not isinstance(payload, (dict, list)):
            r = client.request(method, path, data=data.encode("utf-8"), content_type="text/plain", accept="text/plain")
        else:
            r = client.request(method, path, json=payload)
        return _decode(r.text) if r.content else None
