"""OS detection and small local-machine helpers."""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess

logger = logging.getLogger(__name__)


def is_mac() -> bool:
    return platform.system() == "Darwin"


def is_linux() -> bool:
    return platform.system() == "Linux"


def open_url(url: str) -> bool:
    """Open *url* in the default browser on Mac; no-op elsewhere.

    Returns True if a browser was launched.
    """
    if not is_mac():
        return False
    logger.info("detected running on Mac, opening %s for you automatically", url)
    try:
        subprocess.run(["open", url], check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning("Failed to open %s: %s", url, e)
        return False
    return True


def git_config(key: str) -> str:
    """Return ``git config <key>`` or '' if git or the key is unavailable."""
    if shutil.which("git") is None:
        return ""
    result = subprocess.run(["git", "config", key], capture_output=True, text=True)
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


__all__ = ["is_mac", "is_linux", "open_url", "git_config"]
