"""
Export TeamCity VCS roots to local JSON configuration files.

For backup/restore, migration, or just to backport changes to Git for
revision control tracking.

https://www.jetbrains.com/help/teamcity/rest-api-reference.html#vcs_root+Configuration+And+Template+Settings
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.command_context import CommandContext

logger = logging.getLogger(__name__)


def run(
    config_path: Optional[str] = None,
    vcs_root_ids: Iterable[str] = (),
    output_dir: str = ".",
) -> List[Path]:
    """Download the named VCS roots, or every VCS root when none are named.

    Files are named ``<id>.json``: IDs such as ``MyProject_GithubComFooBar``
    are safer as filenames than display names like ``github.com/foo/bar (1)``.

    Args:
        config_path: Path to the main configuration file
        vcs_root_ids: VCS root IDs to download; blank entries are ignored
        output_dir: Directory the JSON files are written to

    Returns:
        Paths of the files written
    """
    ctx = CommandContext(config_path)
    written = []
    with ctx.http_client() as http:
        client = ctx.teamcity_client(http=http)

        wanted = [(i.strip(), "") for i in vcs_root_ids if i and i.strip()]
        if not wanted:
            wanted = client.list_vcs_roots()
            logger.info("found %d VCS roots", len(wanted))

        target_dir = Path(output_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        for vcs_root_id, vcs_root_name in wanted:
            filename = target_dir / f"{vcs_root_id}.json"
            logger.info(f"downloading vcs_root '{vcs_root_name or vcs_root_id}' to '{filename}'")
            vcs_root = client.get_vcs_root(vcs_root_id)
            filename.write_text(json.dumps(vcs_root, indent=2) + "\n", encoding="utf-8")
            written.append(filename)
    return written
