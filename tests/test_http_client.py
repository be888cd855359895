"""Tests for the retrying HTTP client."""

from __future__ import annotations

import pytest
import requests

from ci_runbooks.core.http_client import RetryableHTTPClient

URL = "http://api.test/thing"


def _client(session, **kwargs) -> RetryableHTTPClient:
    kwargs.setdefault("rps", 1000)
    return RetryableHTTPClient(session=session, **kwargs)


def test_request_returns_successful_response(fake_session, response, no_sleep):
    fake_session.add("GET", URL, response(json_body={"ok": True}))

    r = _client(fake_session).request("get", URL, headers={"Accept": "application/json"})

    assert r.json() == {"ok": True}
    assert fake_session.calls[0]["method"] == "GET"
    assert fake_session.calls[0]["headers"] == {"Accept": "application/json"}


def test_request_retries_server_errors_then_succeeds(fake_session, response, no_sleep):
    fake_session.add("PUT", URL, response(503), response(502), response(json_body={"done": 1}))

    r = _client(fake_session).request("PUT", URL)

    assert r.json() == {"done": 1}
    assert len(fake_session.calls) == 3
    # exponential backoff: 1s then 2s
    assert [s for s in no_sleep if s >= 1] == [1.0, 2.0]


def test_request_honours_retry_after(fake_session, response, no_sleep):
    fake_session.add("GET", URL, response(429, headers={"Retry-After": "5"}), response(json_body=[]))

    _client(fake_session).request("GET", URL)

    assert 5.0 in no_sleep


def test_request_raises_when_retries_exhausted(fake_session, response, no_sleep):
    fake_session.add("GET", URL, response(500))

    with pytest.raises(requests.HTTPError):
        _client(fake_session, max_retries=2).request("GET", URL)
    assert len(fake_session.calls) == 2


def test_request_does_not_retry_client_errors(fake_session, response, no_sleep):
    fake_session.add("GET", URL, response(403, text="Forbidden"))

    with pytest.raises(requests.HTTPError):
        _client(fake_session).request("GET", URL)
    assert len(fake_session.calls) == 1


def test_allowed_statuses_are_returned(fake_session, response, no_sleep):
    fake_session.add("GET", URL, response(404))

    r = _client(fake_session).request("GET", URL, allowed_statuses=(404,))

    assert r.status_code == 404


def test_network_errors_are_retried_then_raised(fake_session, no_sleep):
    fake_session.add("GET", URL, requests.ConnectionError("refused"))

    with pytest.raises(requests.ConnectionError):
        _client(fake_session, max_retries=3).request("GET", URL)
    assert len(fake_session.calls) == 3


def test_get_with_retry_returns_none_on_404(fake_session, response, no_sleep):
    fake_session.add("GET", URL, response(404))

    assert _client(fake_session).get_with_retry(URL) is None


def test_get_text_swallows_connection_errors(fake_session, response, no_sleep):
    fake_session.add("GET", URL, requests.ConnectionError("refused"))
    assert _client(fake_session).get_text(URL) == ""

    fake_session.add("GET", URL, response(503, text="TeamCity is starting"))
    assert _client(fake_session).get_text(URL) == "TeamCity is starting"


def test_context_manager_closes_session(fake_session):
    with _client(fake_session):
        pass
    assert fake_session.closed
