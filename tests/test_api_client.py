"""Tests for the dashboard's HTTP client."""
from __future__ import annotations

import json

import httpx
import pytest

from dashboard.api_client import APIError, CRMClient

BASE_URL = "http://crm.test/api"


class Recorder:
    """Routes mock requests to per-path handlers and records what was sent."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        handler = self.routes[key]
        if callable(handler):
            return handler(request)
        # fresh copy so a canned response can be served more than once
        return httpx.Response(handler.status_code, headers=handler.headers, content=handler.content)

    def calls(self, method, path):
        return [r for r in self.requests if (r.method, r.url.path) == (method, path)]


def _client(recorder, **kwargs):
    return CRMClient(BASE_URL, transport=httpx.MockTransport(recorder), **kwargs)


# ---------------------------------------------------------------------------
# Unit Tests: Tokens
# ---------------------------------------------------------------------------


class TestTokenHandling:
    """Bearer attachment and the refresh-and-replay flow."""

    def test_login_stores_tokens(self):
        recorder = Recorder({
            ("POST", "/api/auth/login"): httpx.Response(
                200, json={"accessToken": "a1", "refreshToken": "r1", "user": {"id": "u1"}}
            ),
            ("GET", "/api/auth/me"): httpx.Response(200, json={"id": "u1"}),
        })
        seen = []
        api = _client(recorder, on_tokens=lambda access, refresh: seen.append((access, refresh)))

        assert api.login("sarah@test.com", "secret123") == {"id": "u1"}
        assert seen == [("a1", "r1")]
        api.me()
        assert recorder.calls("GET", "/api/auth/me")[0].headers["Authorization"] == "Bearer a1"

    def test_401_refreshes_and_replays_once(self):
        def me(request):
            if request.headers.get("Authorization") == "Bearer fresh":
                return httpx.Response(200, json={"id": "u1"})
            return httpx.Response(401, json={"error": "unauthorized", "message": "Invalid or expired token"})

        recorder = Recorder({
            ("GET", "/api/auth/me"): me,
            ("POST", "/api/auth/refresh"): httpx.Response(200, json={"accessToken": "fresh", "refreshToken": "r2"}),
        })
        api = _client(recorder, access_token="stale", refresh_token="r1")

        assert api.me() == {"id": "u1"}
        assert len(recorder.calls("GET", "/api/auth/me")) == 2
        assert len(recorder.calls("POST", "/api/auth/refresh")) == 1
        assert api.access_token == "fresh"
        assert api.refresh_token == "r2"

    def test_failed_refresh_signs_out(self):
        recorder = Recorder({
            ("GET", "/api/clients"): httpx.Response(401, json={"message": "Invalid or expired token"}),
            ("POST", "/api/auth/refresh"): httpx.Response(401, json={"message": "Invalid refresh token"}),
        })
        seen = []
        api = _client(
            recorder,
            access_token="stale",
            refresh_token="expired",
            on_tokens=lambda access, refresh: seen.append((access, refresh)),
        )

        with pytest.raises(APIError) as exc_info:
            api.list_clients()
        assert exc_info.value.status_code == 401
        assert seen == [(None, None)]
        assert api.is_authenticated is False
        assert len(recorder.calls("GET", "/api/clients")) == 1

    def test_second_401_is_not_refreshed_again(self):
        recorder = Recorder({
            ("GET", "/api/auth/me"): httpx.Response(401, json={"message": "User not found"}),
            ("POST", "/api/auth/refresh"): httpx.Response(200, json={"accessToken": "a2", "refreshToken": "r2"}),
        })
        api = _client(recorder, access_token="a1", refresh_token="r1")

        with pytest.raises(APIError):
            api.me()
        assert len(recorder.calls("POST", "/api/auth/refresh")) == 1
        assert len(recorder.calls("GET", "/api/auth/me")) == 2

    def test_login_401_does_not_refresh(self):
        recorder = Recorder({
            ("POST", "/api/auth/login"): httpx.Response(401, json={"message": "Invalid credentials"}),
        })
        api = _client(recorder, refresh_token="r1")

        with pytest.raises(APIError, match="Invalid credentials"):
            api.login("sarah@test.com", "wrong-pass")
        assert recorder.calls("POST", "/api/auth/refresh") == []


# ---------------------------------------------------------------------------
# Unit Tests: Retries and Responses
# ---------------------------------------------------------------------------


class TestRequests:
    """Transport retries, 204 handling and error decoding."""

    def test_get_retried_once_after_transport_error(self):
        attempts = []

        def clients(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"data": [], "total": 0, "page": 1, "limit": 20})

        api = _client(Recorder({("GET", "/api/clients"): clients}), access_token="a1")
        assert api.list_clients()["total"] == 0
        assert len(attempts) == 2

    def test_get_gives_up_after_second_failure(self):
        def clients(request):
            raise httpx.ConnectError("connection refused", request=request)

        recorder = Recorder({("GET", "/api/clients"): clients})
        api = _client(recorder, access_token="a1")
        with pytest.raises(httpx.ConnectError):
            api.list_clients()
        assert len(recorder.requests) == 2

    def test_post_is_never_retried(self):
        def create(request):
            raise httpx.ConnectError("connection refused", request=request)

        recorder = Recorder({("POST", "/api/clients"): create})
        api = _client(recorder, access_token="a1")
        with pytest.raises(httpx.ConnectError):
            api.create_client({"fullName": "Yossi Mizrahi", "phone": "050-1112233"})
        assert len(recorder.requests) == 1

    def test_204_returns_none(self):
        api = _client(Recorder({("DELETE", "/api/deals/d1"): httpx.Response(204)}), access_token="a1")
        assert api.delete_deal("d1") is None

    def test_error_payload(self):
        body = {
            "error": "validation_error",
            "message": "Validation error",
            "errors": [{"field": "phone", "message": "too short"}],
        }
        api = _client(Recorder({("POST", "/api/clients"): httpx.Response(400, json=body)}), access_token="a1")

        with pytest.raises(APIError) as exc_info:
            api.create_client({"fullName": "Yossi", "phone": "1"})
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Validation error"
        assert exc_info.value.errors == [{"field": "phone", "message": "too short"}]

    def test_empty_filters_are_dropped(self):
        recorder = Recorder({("GET", "/api/tasks"): httpx.Response(200, json={"data": []})})
        api = _client(recorder, access_token="a1")

        api.list_tasks(status="TODO", due="", assignedTo=None)
        assert dict(recorder.requests[0].url.params) == {"status": "TODO"}

    def test_board_and_stage_move(self):
        recorder = Recorder({
            ("GET", "/api/deals"): httpx.Response(200, json={"NEW_LEAD": []}),
            ("PATCH", "/api/deals/d1/stage"): httpx.Response(200, json={"id": "d1", "stage": "CLOSED"}),
        })
        api = _client(recorder, access_token="a1")

        api.deals_board(assignedTo="u1")
        assert dict(recorder.requests[0].url.params) == {"assignedTo": "u1", "groupBy": "stage"}

        api.transition_stage("d1", "CLOSED", lost_reason=None)
        assert json.loads(recorder.requests[1].read()) == {"stage": "CLOSED"}
