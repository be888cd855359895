"""Command-line entry point for ci-runbooks."""

from __future__ import annotations

import json
import logging
import os
import sys

import click
import requests

from .commands import api_call as api_cmd
from .commands import rebuild_cancelled as rebuild_cmd
from .commands import teamcity_cluster as teamcity_cmd
from .commands import vcs_roots_download as vcs_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.paths import get_data_dir

# Setup logging early so submodules inherit sane defaults
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def _fail(command: str, exc: Exception) -> None:
    click.echo(f"❌ {command} failed: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--config",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    help="Path to config file (defaults to data_dir/config/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging (also enabled by $DEBUG)")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """ci-runbooks - operational runbooks for BuildKite, TeamCity and docker-compose."""
    if verbose or os.environ.get("DEBUG"):
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command("rebuild-cancelled")
@click.option(
    "--organization",
    default=None,
    help="BuildKite organization (defaults to $BUILDKITE_ORGANIZATION or $BUILDKITE_USER)",
)
@click.option("--dry-run", is_flag=True, help="Only show which builds would be rebuilt")
@click.pass_context
def rebuild_cancelled(ctx: click.Context, organization: str | None, dry_run: bool) -> None:
    """Rebuild the last cancelled build of each BuildKite pipeline.

    Handy after clearing a backlog caused by offline agents by cancelling all
    scheduled builds.
    """
    try:
        rebuilt = rebuild_cmd.run(ctx.obj["config_path"], organization, dry_run=dry_run)
    except requests.RequestException as exc:
        # includes requests.JSONDecodeError, which is also a ValueError
        _fail("rebuild-cancelled", exc)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("rebuild-cancelled", exc)
    if not rebuilt:
        click.echo("No cancelled builds found", err=True)


@cli.command("vcs-roots-download")
@click.argument("vcs_root_ids", nargs=-1)
@click.option("--output-dir", default=".", show_default=True, help="Directory to write <vcs_root_id>.json files to")
@click.pass_context
def vcs_roots_download(ctx: click.Context, vcs_root_ids: tuple[str, ...], output_dir: str) -> None:
    """Export TeamCity VCS roots to local JSON files.

    Downloads the named VCS roots, or every VCS root when none are given.
    Uses $TEAMCITY_URL and $TEAMCITY_TOKEN (or user/password) to connect.
    """
    try:
        written = vcs_cmd.run(ctx.obj["config_path"], vcs_root_ids, output_dir)
        click.echo(f"✅ Downloaded {len(written)} VCS root(s) to {output_dir}", err=True)
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("vcs-roots-download", exc)


@cli.command(
    "teamcity",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@click.argument("action", default="up")
@click.argument("compose_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def teamcity(ctx: click.Context, action: str, compose_args: tuple[str, ...]) -> None:
    """Boot and configure a local TeamCity cluster in Docker.

    ACTION is one of up (default), down, restart, ui, or any other
    docker-compose action, which is passed through along with its arguments.
    """
    try:
        teamcity_cmd.run(ctx.obj["config_path"], action, compose_args)
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail(f"teamcity {action}", exc)


@cli.command("api")
@click.argument("platform", type=click.Choice(api_cmd.PLATFORMS))
@click.argument("path")
@click.option("-X", "--request", "method", default="GET", show_default=True, help="HTTP method")
@click.option("-d", "--data", default=None, help="Request body (JSON object/array, otherwise sent as text)")
@click.pass_context
def api(ctx: click.Context, platform: str, path: str, method: str, data: str | None) -> None:
    """Make an authenticated API call and print the response."""
    try:
        result = api_cmd.run(ctx.obj["config_path"], platform, path, method=method, data=data)
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("api", exc)
    if result is None:
        return
    if isinstance(result, str):
        click.echo(result)
    else:
        click.echo(json.dumps(result, indent=2))


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration location and validate it."""
    try:
        cfg = ConfigManager(ctx.obj["config_path"])
        click.echo(f"Data directory: {get_data_dir()}")
        click.echo(f"Config file: {cfg.config_path}")
        if cfg.validate_config():
            click.echo("✅ Configuration is valid")
        else:
            click.echo("❌ Configuration is invalid, see log output above", err=True)
            sys.exit(1)
    except Exception as exc:  # pragma: no cover - click echoes the message
        _fail("status", exc)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
