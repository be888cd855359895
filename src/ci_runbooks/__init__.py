from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from .commands import api_call as api_cmd
from .commands import rebuild_cancelled as rebuild_cmd
from .commands import teamcity_cluster as teamcity_cmd
from .commands import vcs_roots_download as vcs_cmd
from .commands.teamcity_cluster import ClusterReport
from .core.config import DEFAULT_CONFIG_PATH

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = str(DEFAULT_CONFIG_PATH)

__all__ = [
    'rebuild_cancelled',
    'vcs_roots_download',
    'teamcity',
    'api',
    'ClusterReport',
]


def rebuild_cancelled(
    organization: Optional[str] = None,
    *,
    dry_run: bool = False,
    config_path: Optional[str] = None,
) -> List[Tuple[str, int]]:
    """Rebuild the last cancelled build of every pipeline in a BuildKite organization.

    Args:
        organization: Organization slug; defaults to $BUILDKITE_ORGANIZATION / $BUILDKITE_USER.
        dry_run: Only report what would be rebuilt.
        config_path: Path to main YAML config; defaults to the data dir config.
    """
    return rebuild_cmd.run(config_path or _DEFAULT_CONFIG, organization, dry_run=dry_run)


def vcs_roots_download(
    vcs_root_ids: Iterable[str] = (),
    *,
    output_dir: str = ".",
    config_path: Optional[str] = None,
) -> List[Path]:
    """Export TeamCity VCS roots (all of them when no IDs are given) to ``<id>.json`` files."""
    return vcs_cmd.run(config_path or _DEFAULT_CONFIG, vcs_root_ids, output_dir)


def teamcity(
    action: str = "up",
    *args: str,
    config_path: Optional[str] = None,
) -> Optional[ClusterReport]:
    """Run a local TeamCity cluster action (up, down, restart, ui or a docker-compose passthrough)."""
    return teamcity_cmd.run(config_path or _DEFAULT_CONFIG, action, args)


def api(
    platform: str,
    path: str,
    *,
    method: str = "GET",
    data: Optional[str] = None,
    config_path: Optional[str] = None,
) -> Any:
    """Make one authenticated call to the BuildKite or TeamCity API."""
    return api_cmd.run(config_path or _DEFAULT_CONFIG, platform, path, method=method, data=data)
