"""
tests/test_rate_limits.py -- Rate limiting through the full middleware stack.

Covers:
  - per-route auth limit on signup, signin and admin signin
  - global default limit enforced by SlowAPIMiddleware
  - 429 responses use the error envelope, carry Retry-After and CORS headers
  - health stays reachable under any limit

Limits are lowered per test by patching the cached Settings read by
api/limiter.py; counters are reset before and after each test.
"""

from __future__ import annotations

import pytest

import api.limiter
from api.limiter import limiter

ALLOWED_ORIGIN = "http://localhost:3000"


@pytest.fixture
def set_limits(monkeypatch):
    """Return a setter for the auth and default limit strings."""

    def apply(auth: str = "1000/minute", default: str = "1000/minute") -> None:
        monkeypatch.setattr(api.limiter._settings, "auth_rate_limit", auth)
        monkeypatch.setattr(api.limiter._settings, "default_rate_limit", default)

    limiter.reset()
    yield apply
    limiter.reset()


_BAD_SIGNIN = {"usernameOrPhone": "ghost", "password": "Wrong#Pass9"}


class TestAuthRouteLimit:
    @pytest.mark.parametrize(
        "path, body",
        [
            ("/api/v1/user/signin", _BAD_SIGNIN),
            ("/api/v1/user/authentication/signin", _BAD_SIGNIN),
            ("/api/v1/user/signup", {"username": "x"}),
        ],
    )
    def test_third_attempt_is_limited(self, api_client, set_limits, path, body) -> None:
        set_limits(auth="2/minute")
        statuses = [api_client.client.post(path, json=body).status_code for _ in range(3)]
        assert statuses[:2] == [400, 400]
        assert statuses[2] == 429

    def test_auth_limit_is_stricter_than_default(self, api_client, set_limits) -> None:
        set_limits(auth="1/minute", default="1000/minute")
        assert api_client.client.post("/api/v1/user/signin", json=_BAD_SIGNIN).status_code == 400
        assert api_client.client.post("/api/v1/user/signin", json=_BAD_SIGNIN).status_code == 429
        # Other routes keep their own budget.
        assert api_client.client.post("/api/v1/user/signout").status_code == 200

    def test_limited_response_uses_envelope(self, api_client, set_limits) -> None:
        set_limits(auth="1/minute")
        api_client.client.post("/api/v1/user/signin", json=_BAD_SIGNIN)
        resp = api_client.client.post("/api/v1/user/signin", json=_BAD_SIGNIN)
        assert resp.status_code == 429
        data = resp.json()
        assert data["success"] is False
        assert data["code"] == "rate_limited"
        assert resp.headers["retry-after"] == "60"


class TestDefaultLimit:
    def test_search_limited_by_default(self, api_client, set_limits) -> None:
        set_limits(default="2/minute")
        statuses = [api_client.client.get("/api/v1/search", params={"q": "run"}).status_code for _ in range(3)]
        assert statuses == [200, 200, 429]

    def test_middleware_429_uses_envelope(self, api_client, set_limits) -> None:
        set_limits(default="1/minute")
        api_client.client.get("/api/v1/search", params={"q": "run"})
        resp = api_client.client.get("/api/v1/search", params={"q": "run"})
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limited"
        assert resp.headers["retry-after"] == "60"

    def test_429_carries_cors_headers(self, api_client, set_limits) -> None:
        set_limits(default="1/minute")
        headers = {"Origin": ALLOWED_ORIGIN}
        ok = api_client.client.get("/api/v1/search", params={"q": "run"}, headers=headers)
        limited = api_client.client.get("/api/v1/search", params={"q": "run"}, headers=headers)
        assert ok.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
        assert limited.status_code == 429
        assert limited.headers["access-control-allow-origin"] == ALLOWED_ORIGIN

    def test_health_is_exempt(self, api_client, set_limits) -> None:
        set_limits(default="1/minute")
        statuses = [api_client.client.get("/api/v1/health").status_code for _ in range(3)]
        assert statuses == [200, 200, 200]

    def test_unknown_host_rejected_before_counting(self, api_client, set_limits) -> None:
        set_limits(default="1/minute")
        bad_host = {"Host": "evil.example.com"}
        for _ in range(3):
            assert api_client.client.get("/api/v1/search", params={"q": "run"}, headers=bad_host).status_code == 400
        assert api_client.client.get("/api/v1/search", params={"q": "run"}).status_code == 200
