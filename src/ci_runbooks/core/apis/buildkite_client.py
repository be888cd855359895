"""
BuildKite REST API (v2) client.

https://buildkite.com/docs/apis/rest-api
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

from ..http_client import RetryableHTTPClient

logger = logging.getLogger(__name__)

BUILDKITE_API = "https://api.buildkite.com/v2"


class BuildkiteClient:
    """Authenticated access to the BuildKite REST API.

    Args:
        token: API access token sent as a bearer token
        http: Shared HTTP client (a default one is created when None)
        api_url: API root, overridable for testing
    """

    def __init__(
        self,
        token: str,
        *,
        http: Optional[RetryableHTTPClient] = None,
        api_url: str = BUILDKITE_API,
    ):
        if not token:
            raise ValueError("BuildKite API token not set, export $BUILDKITE_TOKEN")
        self.api_url = api_url.rstrip("/")
        self.http = http or RetryableHTTPClient()
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        """Join *path* onto the API root; absolute URLs (e.g. a build's ``url``) are used as-is."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.api_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        """Perform one API call and return the decoded JSON body (None if empty)."""
        r = self.http.request(method, self._url(path), headers=self.headers, params=params, json=json)
        if not r.content:
            return None
        return r.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield items from every page of a list endpoint, following ``Link: rel=next``."""
        url: Optional[str] = self._url(path)
        while url:
            r = self.http.request("GET", url, headers=self.headers, params=params)
            for item in r.json() or []:
                yield item
            url = (r.links.get("next") or {}).get("url")
            # the next link already carries the query string
            params = None

    def list_pipelines(self, organization: str) -> List[Dict[str, Any]]:
        return list(self.paginate(f"organizations/{organization}/pipelines"))

    def list_builds(
        self,
        organization: str,
        pipeline: str,
        state: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return the first page of builds for *pipeline*, newest first."""
        params = {"state": state} if state else None
        return self.get(f"organizations/{organization}/pipelines/{pipeline}/builds", params) or []

    def last_build(self, organization: str, pipeline: str, state: Optional[str] = None) -> Optional[Dict[str, Any]]:
        builds = self.list_builds(organization, pipeline, state)
        return builds[0] if builds else None

    def rebuild(self, build_url: str) -> Any:
        """Trigger a rebuild of the build at *build_url* (API URL or relative path)."""
        return self.request("PUT", f"{build_url.rstrip('/')}/rebuild")
