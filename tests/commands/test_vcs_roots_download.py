import json

import pytest

from ci_runbooks.commands import vcs_roots_download as vcs_cmd
from ci_runbooks.core.command_context import CommandContext
from ci_runbooks.core.http_client import RetryableHTTPClient

REST = "http://teamcity.test:8111/app/rest"

ROOTS = {
    "Proj_GithubComAcmeRepo": {"id": "Proj_GithubComAcmeRepo", "name": "github.com/acme/repo", "vcsName": "jetbrains.git"},
    "Proj_GithubComAcmeRepo1": {"id": "Proj_GithubComAcmeRepo1", "name": "github.com/acme/repo (1)", "vcsName": "jetbrains.git"},
}


@pytest.fixture
def teamcity(monkeypatch, fake_session, response, no_sleep):
    monkeypatch.setenv("TEAMCITY_TOKEN", "tc-token")
    monkeypatch.setattr(
        CommandContext,
        "http_client",
        lambda self: RetryableHTTPClient(rps=1000, session=fake_session),
    )
    fake_session.add("GET", f"{REST}/vcs-roots", response(json_body={
        "count": 2,
        "vcs-root": [{"id": i, "name": r["name"]} for i, r in ROOTS.items()],
    }))
    for vcs_root_id, body in ROOTS.items():
        fake_session.add("GET", f"{REST}/vcs-roots/{vcs_root_id}", response(json_body=body))
    return fake_session


def test_downloads_every_vcs_root_when_none_named(teamcity, config_file, tmp_path):
    out_dir = tmp_path / "export"

    written = vcs_cmd.run(str(config_file), output_dir=str(out_dir))

    assert sorted(p.name for p in written) == ["Proj_GithubComAcmeRepo.json", "Proj_GithubComAcmeRepo1.json"]
    saved = json.loads((out_dir / "Proj_GithubComAcmeRepo1.json").read_text(encoding="utf-8"))
    assert saved == ROOTS["Proj_GithubComAcmeRepo1"]
    assert (out_dir / "Proj_GithubComAcmeRepo.json").read_text(encoding="utf-8").endswith("}\n")
    assert teamcity.calls[0]["headers"]["Authorization"] == "Bearer tc-token"
    assert teamcity.closed


def test_downloads_only_named_vcs_roots(teamcity, config_file, tmp_path):
    written = vcs_cmd.run(str(config_file), ["Proj_GithubComAcmeRepo", "  ", ""], str(tmp_path))

    assert [p.name for p in written] == ["Proj_GithubComAcmeRepo.json"]
    assert [c["url"] for c in teamcity.calls] == [f"{REST}/vcs-roots/Proj_GithubComAcmeRepo"]


def test_teamcity_url_environment_overrides_config(teamcity, config_file, tmp_path, monkeypatch, response):
    monkeypatch.setenv("TEAMCITY_URL", "http://other.test:8111")
    teamcity.add("GET", "http://other.test:8111/app/rest/vcs-roots/X", response(json_body={"id": "X"}))

    vcs_cmd.run(str(config_file), ["X"], str(tmp_path))

    assert teamcity.calls[0]["url"] == "http://other.test:8111/app/rest/vcs-roots/X"
