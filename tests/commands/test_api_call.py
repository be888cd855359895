import pytest

from ci_runbooks.commands import api_call as api_cmd
from ci_runbooks.core.command_context import CommandContext
from ci_runbooks.core.http_client import RetryableHTTPClient


@pytest.fixture
def session(monkeypatch, fake_session, no_sleep):
    monkeypatch.setattr(
        CommandContext,
        "http_client",
        lambda self: RetryableHTTPClient(rps=1000, session=fake_session),
    )
    return fake_session


def test_buildkite_call_returns_json(session, response, config_file, monkeypatch):
    monkeypatch.setenv("BUILDKITE_TOKEN", "bk-token")
    session.add("GET", "https://api.buildkite.com/v2/user", response(json_body={"name": "Jane"}))

    assert api_cmd.run(str(config_file), "buildkite", "/user") == {"name": "Jane"}
    assert session.closed


def test_teamcity_text_body_is_sent_as_plain_text(session, response, config_file, monkeypatch):
    monkeypatch.setenv("TEAMCITY_SUPERUSER_TOKEN", "su")
    session.add("PUT", "http://teamcity.test:8111/app/rest/agents/a1/authorized", response(text="true"))

    result = api_cmd.run(str(config_file), "teamcity", "/agents/a1/authorized", method="put", data="true")

    assert result is True
    call = session.calls[0]
    assert call["data"] == b"true"
    assert call["headers"]["Content-Type"] == "text/plain"
    assert call["auth"] == ("", "su")


def test_teamcity_json_object_body_is_sent_as_json(session, response, config_file):
    session.add("POST", "http://teamcity.test:8111/app/rest/users", response(json_body={"username": "bob"}))

    result = api_cmd.run(
        str(config_file), "teamcity", "/users", method="POST", data='{"username": "bob", "password": "pw"}'
    )

    assert result == {"username": "bob"}
    assert session.calls[0]["json"] == {"username": "bob", "password": "pw"}
    # falls back to the configured admin/admin credentials
    assert session.calls[0]["auth"] == ("admin", "admin")


def test_unknown_platform(config_file):
    with pytest.raises(ValueError, match="Unknown platform"):
        api_cmd.run(str(config_file), "jenkins", "/")
