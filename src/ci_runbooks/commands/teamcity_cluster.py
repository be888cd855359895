"""
Boot a local TeamCity CI cluster (server + agents) in Docker and configure it.

Actions
-------

- ``up`` (default): start the cluster and run the bootstrap below.
- ``restart``: ``down`` then ``up``.
- ``ui``: print the server URL (opened in the browser on Mac).
- anything else is passed straight through to docker-compose.

Bootstrap
---------

1. Wait for the server to answer, then for the user to click through the
   First Start / database setup pages and accept the EULA (the URL is opened
   automatically on Mac).
2. Wait for the superuser authentication token to appear in the server logs.
3. Create an administrator user (``$TEAMCITY_USER`` / ``$TEAMCITY_PASSWORD``,
   default admin / admin) unless any user already exists, copying full name
   and email from Git config, and create an API token for it.
4. Wait for the agents declared in the compose file to connect, authorize the
   expected ones, and delete stale disconnected agent references.

Idempotent: re-running continues from whichever stage the cluster is in.
The JetBrains images are large so the first pull may take a while.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import requests

from ..core.apis import TeamCityClient
from ..core.command_context import CommandContext
from ..core.compose import DockerCompose
from ..core.http_client import RetryableHTTPClient
from ..core.platform_utils import git_config, open_url
from ..core.polling import url_content_matches, wait_until, when_url_content

logger = logging.getLogger(__name__)

SETUP_PATTERNS = (
    r"first.*start",
    r"database.*setup",
    r"TeamCity Maintenance",
    r"Setting up",
)
EULA_PATTERN = r"license.*agreement"
SUPERUSER_TOKEN_MARKER = "Super user authentication token"
SUPERUSER_TOKEN_RE = re.compile(r"Super user authentication token: ([A-Za-z0-9]+)")
TOKEN_NAME = "mytoken"


@dataclass
class ClusterSettings:
    url: str
    user: str = "admin"
    password: str = "admin"
    server_service: str = "teamcity-server"
    url_wait_secs: float = 60
    max_wait_secs: float = 300
    poll_interval: float = 3


@dataclass
class ClusterReport:
    """What a bootstrap run did, for callers and tests."""

    url: str
    superuser_token: str = ""
    user_created: bool = False
    api_token: Optional[str] = None
    expected_agents: List[str] = field(default_factory=list)
    authorized_agents: List[str] = field(default_factory=list)
    unexpected_agents: List[str] = field(default_factory=list)
    deleted_agents: List[str] = field(default_factory=list)


def is_setup_in_progress(http: RetryableHTTPClient, url: str) -> bool:
    return url_content_matches(http, url, *SETUP_PATTERNS)


def extract_superuser_token(logs: str) -> Optional[str]:
    """Return the most recent superuser token printed in the server logs."""
    tokens = SUPERUSER_TOKEN_RE.findall(logs)
    return tokens[-1] if tokens else None


def is_expected_agent(agent: str, expected_agents: Sequence[str]) -> bool:
    """Recreated agents get ``-<n>`` appended to avoid clashing with their stale selves."""
    return any(re.fullmatch(rf"{re.escape(expected)}(-\d+)?", agent) for expected in expected_agents)


def wait_for_setup_pages(http: RetryableHTTPClient, settings: ClusterSettings) -> None:
    when_url_content(http, settings.url, ".*", timeout=settings.url_wait_secs)

    logger.info("TeamCity Server URL:  %s", settings.url)
    if is_setup_in_progress(http, settings.url):
        logger.info("Open TeamCity Server URL in web browser to continue, click proceed, accept EULA etc..")
        open_url(settings.url)

    logger.info(
        "waiting for up to %g seconds for user to click proceed through First Start and database setup pages",
        settings.max_wait_secs,
    )
    wait_until(
        lambda: not is_setup_in_progress(http, settings.url),
        timeout=settings.max_wait_secs,
        interval=settings.poll_interval,
        message="waiting for you to click proceed through First Start & setup pages "
                "and then preliminary initialization to finish",
        timeout_message=f"Did not progress past First Start and setup pages within {settings.max_wait_secs:g} seconds",
    )

    # guards against a transient 404 before the EULA page comes up
    when_url_content(http, settings.url, ".*", timeout=settings.url_wait_secs)

    logger.info("waiting for up to %g seconds for user to accept EULA", settings.max_wait_secs)
    wait_until(
        lambda: not url_content_matches(http, settings.url, EULA_PATTERN),
        timeout=settings.max_wait_secs,
        interval=settings.poll_interval,
        message="waiting for you to accept the license agreement",
        timeout_message=f"Did not accept EULA within {settings.max_wait_secs:g} seconds",
    )


def wait_for_superuser_token(compose: DockerCompose, settings: ClusterSettings) -> str:
    logger.info("waiting for up to %g seconds for TeamCity to finish initializing", settings.max_wait_secs)
    # the token is logged just after 'TeamCity initialized' so waiting for it covers both
    wait_until(
        lambda: SUPERUSER_TOKEN_MARKER in compose.logs(settings.server_service),
        timeout=settings.max_wait_secs,
        interval=settings.poll_interval,
        message="waiting for TeamCity server to finish initializing and reveal superuser token in logs",
        timeout_message=(
            f"TeamCity server failed to initialize within {settings.max_wait_secs:g} seconds "
            "(perhaps you didn't trigger the UI to continue initialization?)"
        ),
    )

    token = extract_superuser_token(compose.logs(settings.server_service))
    if not token:
        raise RuntimeError(
            "Super user token not found in docker logs "
            "(maybe premature or late ie. logs were already cycled out of buffer?)"
        )
    logger.info("TeamCity superuser token: %s", token)
    logger.info("(this must be used with a blank username via basic auth if using the API)")
    return token


def ensure_admin_user(client: TeamCityClient, settings: ClusterSettings, report: ClusterReport) -> None:
    """Create the admin user and its API token, unless any user already exists."""
    user = settings.user
    logger.info("Checking if any user already exists")
    if client.list_usernames():
        logger.info("users already exist, not creating teamcity administrative user '%s'", user)
        return

    logger.info("no users exist yet, creating teamcity user '%s'", user)
    client.create_user(user, settings.password)
    report.user_created = True

    for field_name, git_key in (("name", "user.name"), ("email", "user.email")):
        value = git_config(git_key)
        if value:
            logger.info("Setting teamcity user %s's git %s to '%s'", user, field_name, value)
            client.set_user_field(user, field_name, value)

    logger.info("Setting teamcity user '%s' as system administrator", user)
    client.grant_role(user, "SYSTEM_ADMIN", "g")

    if client.list_token_names(user):
        logger.info("TeamCity user '%s' already has an API token, skipping token creation", user)
        logger.info("since existing token values cannot be read back from the API, continuing with the superuser token")
        return

    logger.info("Creating API token for user '%s'", user)
    api_token = client.create_token(user, TOKEN_NAME)
    report.api_token = api_token
    logger.info("here is your user API token, export this and then you can easily use the 'api teamcity' command:")
    print(f"export TEAMCITY_URL={settings.url}")
    print(f"export TEAMCITY_TOKEN={api_token}")
    # the superuser token takes precedence, switch to the user's own token
    client.use_token(api_token)


def show_login(settings: ClusterSettings) -> None:
    logger.info(
        "Login here with username '%s' and password: $TEAMCITY_PASSWORD (default: admin):", settings.user
    )
    login_url = f"{settings.url}/login.html"
    print(login_url)
    open_url(login_url)


def authorize_agents(
    client: TeamCityClient,
    compose: DockerCompose,
    settings: ClusterSettings,
    report: ClusterReport,
) -> None:
    logger.info("getting list of expected agents")
    expected = compose.expected_agents()
    report.expected_agents = expected

    def enough_agents_connected() -> bool:
        try:
            connected = len(client.list_agent_names("connected:true,authorized:any"))
        except requests.RequestException as e:
            # server still settling after setup, treat as none connected yet
            logger.debug("failed to list connected agents: %s", e)
            return False
        logger.info("connected agents: %d", connected)
        return connected >= len(expected)

    logger.info("waiting for %d expected agent(s) to connect before authorizing them", len(expected))
    wait_until(
        enough_agents_connected,
        timeout=settings.max_wait_secs,
        interval=settings.poll_interval,
        timeout_message=f"giving up waiting for connected agents after {settings.max_wait_secs:g} seconds",
        raise_on_timeout=False,
    )

    logger.info("getting list of unauthorized agents")
    unauthorized = client.list_agent_names("authorized:false")
    logger.info("authorizing any expected agents that are not currently authorized")
    if not unauthorized:
        logger.info("no unauthorized agents found")
    for agent in unauthorized:
        if is_expected_agent(agent, expected):
            logger.info("authorizing expected agent '%s'", agent)
            client.authorize_agent(agent)
            report.authorized_agents.append(agent)
        else:
            logger.warning("unauthorized agent '%s' was not expected, not automatically authorizing", agent)
            report.unexpected_agents.append(agent)


def delete_disconnected_agents(client: TeamCityClient, report: ClusterReport) -> None:
    """Stops agent-<n> references piling up each time the cluster is recreated."""
    logger.info("deleting old disconnected agent references")
    for agent in client.list_agent_names("connected:false"):
        logger.info("deleting disconnected agent '%s'", agent)
        client.delete_agent(agent)
        report.deleted_agents.append(agent)


def bootstrap(
    settings: ClusterSettings,
    compose: DockerCompose,
    http: RetryableHTTPClient,
    make_client: Callable[[str], TeamCityClient],
) -> ClusterReport:
    """Drive a freshly started cluster to a usable, authorized state.

    Args:
        settings: Cluster URL, credentials and wait budgets
        compose: docker-compose wrapper for the cluster
        http: Client used to poll the server's web pages
        make_client: Builds an API client authenticated with the given superuser token
    """
    report = ClusterReport(url=settings.url)

    wait_for_setup_pages(http, settings)
    report.superuser_token = wait_for_superuser_token(compose, settings)

    client = make_client(report.superuser_token)
    ensure_admin_user(client, settings, report)
    if report.user_created:
        show_login(settings)

    authorize_agents(client, compose, settings, report)
    delete_disconnected_agents(client, report)

    logger.info("TeamCity is up and ready")
    return report


def run(
    config_path: Optional[str] = None,
    action: str = "up",
    extra_args: Sequence[str] = (),
) -> Optional[ClusterReport]:
    """Run a cluster action; ``up`` and ``restart`` also bootstrap the server.

    Args:
        config_path: Path to the main configuration file
        action: up, down, restart, ui, or any other docker-compose action
        extra_args: Extra arguments passed to docker-compose

    Returns:
        The bootstrap report for ``up``/``restart``, otherwise None
    """
    ctx = CommandContext(config_path)
    user, password = ctx.teamcity_credentials()
    settings = ClusterSettings(
        url=ctx.cluster_url(),
        user=user,
        password=password,
        server_service=ctx.setting("teamcity", "server_service", "teamcity-server"),
        url_wait_secs=float(ctx.setting("teamcity", "url_wait_secs", 60)),
        max_wait_secs=float(ctx.setting("teamcity", "max_wait_secs", 300)),
        poll_interval=float(ctx.setting("teamcity", "poll_interval", 3)),
    )

    if action == "ui":
        print(f"TeamCity Server URL:  {settings.url}")
        open_url(settings.url)
        return None

    compose = DockerCompose(ctx.compose_file())

    if action == "restart":
        compose.down()
        action = "up"
        extra_args = ()
    if action != "up":
        compose.run(action, *extra_args)
        return None

    logger.info("Booting TeamCity cluster:")
    # agents must boot alongside the server, agents started later are not connected in time to be authorized
    compose.up(*extra_args)

    with ctx.http_client() as http:
        return bootstrap(
            settings,
            compose,
            http,
            lambda token: ctx.teamcity_client(settings.url, superuser_token=token, http=http),
        )
