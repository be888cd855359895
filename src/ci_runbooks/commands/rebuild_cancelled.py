"""
Rebuild the last cancelled build of every pipeline in a BuildKite organization.

Useful after clearing a backlog (e.g. agents were offline) by cancelling all
scheduled builds: this brings back one build per pipeline.

May fail with Forbidden if the BuildKite trial account has expired.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Tuple

from ..core.command_context import CommandContext

logger = logging.getLogger(__name__)


def run(
    config_path: Optional[str] = None,
    organization: Optional[str] = None,
    *,
    dry_run: bool = False,
) -> List[Tuple[str, int]]:
    """Rebuild the most recent cancelled build of each pipeline.

    Args:
        config_path: Path to the main configuration file
        organization: BuildKite organization slug (defaults to $BUILDKITE_ORGANIZATION / $BUILDKITE_USER)
        dry_run: Only report what would be rebuilt

    Returns:
        (pipeline slug, build number) for every build rebuilt (or selected, on dry run)

    Raises:
        ValueError: If no organization can be resolved
    """
    ctx = CommandContext(config_path)
    organization = ctx.buildkite_organization(organization)
    if not organization:
        raise ValueError("$BUILDKITE_ORGANIZATION not defined")

    rebuilt = []
    with ctx.http_client() as http:
        client = ctx.buildkite_client(http)
        for pipeline in client.list_pipelines(organization):
            slug = pipeline.get("slug")
            if not slug:
                continue
            build = client.last_build(organization, slug, state="canceled")
            if build is None:
                logger.debug("no cancelled builds for pipeline '%s'", slug)
                continue

            name = (build.get("pipeline") or {}).get("slug") or slug
            number = build.get("number")
            if dry_run:
                print(f"Would rebuild {name} build number {number}")
                rebuilt.append((name, number))
                continue

            print(f"Rebuilding {name} build number {number}:  ", end="", flush=True)
            response = client.rebuild(build["url"])
            print(json.dumps(response, indent=2))
            rebuilt.append((name, number))

    logger.info("Rebuild of cancelled builds finished for organization '%s': %d pipeline(s)", organization, len(rebuilt))
    return rebuilt
