"""
TeamCity REST API client.

https://www.jetbrains.com/help/teamcity/rest-api.html

Authentication follows the order TeamCity documents for scripted access:

1. the superuser token printed in the server log, sent as basic auth with a
   blank username,
2. a user access token, sent as a bearer token,
3. username and password via basic auth.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from ..http_client import RetryableHTTPClient

logger = logging.getLogger(__name__)

REST_PREFIX = "/app/rest"
JSON = "application/json"
TEXT = "text/plain"


def _segment(value: str) -> str:
    return quote(str(value), safe=":,")


class TeamCityClient:
    """Authenticated access to a TeamCity server's REST API.

    Args:
        url: Server root URL, e.g. ``http://localhost:8111``
        user: Username for basic auth
        password: Password for basic auth
        token: User access token (bearer)
        superuser_token: Superuser token from the server log
        http: Shared HTTP client (a default one is created when None)
    """

    def __init__(
        self,
        url: str,
        *,
        user: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        superuser_token: Optional[str] = None,
        http: Optional[RetryableHTTPClient] = None,
    ):
        if not url:
            raise ValueError("TeamCity URL not set, export $TEAMCITY_URL")
        self.url = url.rstrip("/")
        self.user = user
        self.password = password
        self.token = token
        self.superuser_token = superuser_token
        self.http = http or RetryableHTTPClient()
        if not (superuser_token or token or (user and password)):
            raise ValueError(
                "No TeamCity credentials: set $TEAMCITY_TOKEN, $TEAMCITY_SUPERUSER_TOKEN "
                "or $TEAMCITY_USER and $TEAMCITY_PASSWORD"
            )

    @property
    def auth_mode(self) -> str:
        if self.superuser_token:
            return "superuser"
        if self.token:
            return "token"
        return "password"

    def use_token(self, token: str) -> None:
        """Switch to a user API token, dropping the superuser token which would take precedence."""
        self.superuser_token = None
        self.token = token

    def _auth(self) -> Tuple[Optional[Any], Dict[str, str]]:
        if self.superuser_token:
            return ("", self.superuser_token), {}
        if self.token:
            return None, {"Authorization": f"Bearer {self.token}"}
        return (self.user or "", self.password or ""), {}

    def rest_url(self, path: str) -> str:
        path = "/" + path.lstrip("/")
        if not path.startswith(REST_PREFIX + "/"):
            path = REST_PREFIX + path
        return self.url + path

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Any = None,
        json: Any = None,
        content_type: str = JSON,
        accept: str = JSON,
    ) -> requests.Response:
        auth, headers = self._auth()
        headers.update({"Accept": accept, "Content-Type": content_type})
        return self.http.request(
            method,
            self.rest_url(path),
            headers=headers,
            params=params,
            data=data,
            json=json,
            auth=auth,
        )

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET *path* and return the decoded JSON body."""
        r = self.request("GET", path, params=params)
        return r.json() if r.content else {}

    def put_text(self, path: str, value: str) -> str:
        """PUT a plain-text value, as TeamCity expects for single-field endpoints."""
        r = self.request("PUT", path, data=value.encode("utf-8"), content_type=TEXT, accept=TEXT)
        return r.text

    # users

    def list_usernames(self) -> List[str]:
        data = self.get("/users")
        return [u["username"] for u in data.get("user") or [] if u.get("username")]

    def create_user(self, username: str, password: str) -> Dict[str, Any]:
        r = self.request("POST", "/users", json={"username": username, "password": password})
        return r.json() if r.content else {}

    def set_user_field(self, username: str, field: str, value: str) -> str:
        return self.put_text(f"/users/{_segment(username)}/{field}", value)

    def grant_role(self, username: str, role: str = "SYSTEM_ADMIN", scope: str = "g") -> None:
        self.request("PUT", f"/users/username:{_segment(username)}/roles/{role}/{scope}/")

    def list_token_names(self, username: str) -> List[str]:
        data = self.get(f"/users/{_segment(username)}/tokens")
        return [t.get("name", "") for t in data.get("token") or []]

    def create_token(self, username: str, name: str = "mytoken") -> str:
        r = self.request("POST", f"/users/{_segment(username)}/tokens/{_segment(name)}")
        value = (r.json() if r.content else {}).get("value")
        if not value:
            raise RuntimeError(f"TeamCity did not return a value for new token '{name}' of user '{username}'")
        return value

    # agents

    def list_agent_names(self, locator: str) -> List[str]:
        data = self.get("/agents", params={"locator": locator})
        return [a["name"] for a in data.get("agent") or [] if a.get("name")]

    def authorize_agent(self, name: str) -> str:
        return self.put_text(f"/agents/{_segment(name)}/authorized", "true")

    def delete_agent(self, name: str) -> None:
        self.request("DELETE", f"/agents/{_segment(name)}")

    # vcs roots

    def list_vcs_roots(self) -> List[Tuple[str, str]]:
        data = self.get("/vcs-roots")
        return [(r["id"], r.get("name") or "") for r in data.get("vcs-root") or [] if r.get("id")]

    def get_vcs_root(self, vcs_root_id: str) -> Dict[str, Any]:
        return self.get(f"/vcs-roots/{_segment(vcs_root_id)}")
