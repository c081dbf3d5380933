"""Tests for the sliding-window limiter and the rate limiting middleware."""

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from readiness_auth.shared.middleware.rate_limiting_middleware import (
    AsyncRateLimiter,
    AsyncRateLimitingMiddleware,
    RateLimitPolicy,
    build_policies,
    normalize_ip,
)


def policy(name="test", limit=3, window=60, failures_only=False, paths=("/api/",), methods=None, status_code=429):
    return RateLimitPolicy(
        name=name,
        window_seconds=window,
        max_requests=limit,
        dev_max_requests=limit,
        code=f"{name.upper()}_LIMITED",
        message=f"{name} limited",
        paths=paths,
        methods=methods,
        failures_only=failures_only,
        status_code=status_code,
    )


def policies_by_name(settings):
    return {p.name: p for p in build_policies(settings)}


class TestPolicyMatching:
    def test_prefix_and_exact_paths(self):
        p = policy(paths=("/api/auth/password-reset/", "/api/auth/rotate"))

        assert p.matches("POST", "/api/auth/password-reset/request")
        assert p.matches("GET", "/api/auth/password-reset/validate/abc")
        assert p.matches("POST", "/api/auth/rotate")
        assert not p.matches("POST", "/api/auth/rotate-other")

    def test_method_filter(self):
        p = policy(paths=("/api/auth/login",), methods=frozenset({"POST"}))

        assert p.matches("POST", "/api/auth/login")
        assert not p.matches("GET", "/api/auth/login")

    def test_method_qualified_entry(self):
        p = policy(paths=("PUT /api/user/me",))

        assert p.matches("PUT", "/api/user/me")
        assert not p.matches("GET", "/api/user/me")

    def test_policy_table(self, settings):
        table = policies_by_name(settings)

        assert set(table) == {"general", "auth", "registration", "password_reset", "sensitive", "account_lockout"}
        assert table["auth"].failures_only
        assert table["account_lockout"].failures_only
        assert table["account_lockout"].status_code == 423
        assert table["account_lockout"].code == "ACCOUNT_LOCKED"
        assert table["account_lockout"].window_seconds == settings.LOCKOUT_DURATION_MINUTES * 60
        assert table["account_lockout"].limit(True) == settings.MAX_LOGIN_ATTEMPTS
        assert table["registration"].limit(True) == 3
        assert table["registration"].limit(False) == 10
        assert table["sensitive"].matches("PUT", "/api/user/me")
        assert table["sensitive"].matches("DELETE", "/api/user/google/disconnect")
        assert table["sensitive"].matches("POST", "/api/auth/logout-all")

    def test_login_matches_general_auth_and_lockout(self, settings):
        limiter = AsyncRateLimiter(build_policies(settings))

        names = [p.name for p in limiter.policies_for("POST", "/api/auth/login")]

        assert names == ["general", "account_lockout", "auth"]


class TestAsyncRateLimiter:
    def test_blocks_after_limit(self, clock):
        p = policy(limit=2)
        limiter = AsyncRateLimiter([p], clock=clock)

        for expected_remaining in (1, 0):
            decision = limiter.check([p], "k")
            assert decision.allowed
            assert decision.remaining == expected_remaining
            limiter.record(p, "k")

        decision = limiter.check([p], "k")
        assert not decision.allowed
        assert decision.policy is p
        assert decision.retry_after == 60

    def test_window_slides(self, clock):
        p = policy(limit=1, window=60)
        limiter = AsyncRateLimiter([p], clock=clock)
        limiter.record(p, "k")

        clock.advance(30)
        decision = limiter.check([p], "k")
        assert not decision.allowed
        assert decision.retry_after == 30

        clock.advance(30)
        assert limiter.check([p], "k").allowed

    def test_keys_are_independent(self, clock):
        p = policy(limit=1)
        limiter = AsyncRateLimiter([p], clock=clock)
        limiter.record(p, "a")

        assert not limiter.check([p], "a").allowed
        assert limiter.check([p], "b").allowed

    def test_tightest_policy_reported(self, clock):
        loose, tight = policy("loose", limit=10), policy("tight", limit=2)
        limiter = AsyncRateLimiter([loose, tight], clock=clock)

        decision = limiter.check([loose, tight], "k")

        assert decision.policy is tight
        assert decision.limit == 2
        assert decision.remaining == 1

    def test_production_limits(self, settings, clock):
        table = policies_by_name(settings)
        limiter = AsyncRateLimiter([table["registration"]], production=True, clock=clock)
        for _ in range(3):
            limiter.record(table["registration"], "k")

        assert not limiter.check([table["registration"]], "k").allowed

    def test_sweep_drops_idle_buckets(self, clock):
        short, long = policy("short", window=60), policy("long", window=600)
        limiter = AsyncRateLimiter([short, long], clock=clock)
        for key in ("a", "b", "c"):
            limiter.record(short, key)
        limiter.record(long, "a")

        clock.advance(61)
        assert limiter.sweep() == 3
        assert list(limiter.hits) == [("long", "a")]

    def test_idle_buckets_swept_on_check(self, clock):
        p = policy(window=60)
        limiter = AsyncRateLimiter([p], clock=clock, sweep_interval=120)
        for key in range(100):
            limiter.record(p, f"client-{key}")

        clock.advance(90)
        limiter.check([p], "someone-else")
        assert len(limiter.hits) == 100

        clock.advance(30)
        limiter.check([p], "someone-else")
        assert limiter.hits == {}

    def test_normalize_ip(self):
        assert normalize_ip("127.0.0.1") == "127-0-0-1"
        assert normalize_ip("::1") == "--1"


def make_app(limiter):
    app = FastAPI()
    app.add_middleware(AsyncRateLimitingMiddleware, limiter=limiter)

    @app.post("/api/login")
    async def login(ok: bool = True):
        if ok:
            return {"ok": True}
        return JSONResponse(status_code=401, content={"detail": "Invalid email or password"})

    @app.get("/api/ping")
    async def ping():
        return {"pong": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


class TestAsyncRateLimitingMiddleware:
    def test_limits_and_headers(self, clock):
        limiter = AsyncRateLimiter([policy("general", limit=2)], clock=clock)
        client = TestClient(make_app(limiter))

        first = client.get("/api/ping")
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"

        assert client.get("/api/ping").status_code == 200

        blocked = client.get("/api/ping")
        assert blocked.status_code == 429
        assert blocked.json() == {"detail": "general limited", "code": "GENERAL_LIMITED", "errors": None}
        assert blocked.headers["Retry-After"] == "60"
        assert blocked.headers["X-RateLimit-Remaining"] == "0"

    def test_health_is_not_limited(self, clock):
        limiter = AsyncRateLimiter([policy("general", limit=1, paths=("/",))], clock=clock)
        client = TestClient(make_app(limiter))

        for _ in range(5):
            assert client.get("/health").status_code == 200

    def test_failures_only_policy_ignores_successes(self, clock):
        lockout = policy("lockout", limit=2, failures_only=True, paths=("/api/login",), status_code=423)
        limiter = AsyncRateLimiter([lockout], clock=clock)
        client = TestClient(make_app(limiter))

        for _ in range(5):
            assert client.post("/api/login").status_code == 200

        assert client.post("/api/login?ok=false").status_code == 401
        assert client.post("/api/login?ok=false").status_code == 401

        locked = client.post("/api/login")
        assert locked.status_code == 423
        assert locked.json()["code"] == "LOCKOUT_LIMITED"

        clock.advance(61)
        assert client.post("/api/login").status_code == 200

    def test_authenticated_user_gets_own_bucket(self, clock, token_service):
        limiter = AsyncRateLimiter([policy("general", limit=1)], clock=clock)
        app = make_app(limiter)
        app.state.token_service = token_service
        access_token = token_service.create_access_token("user-1", "client", "session-1")

        anonymous = TestClient(app)
        assert anonymous.get("/api/ping").status_code == 200
        assert anonymous.get("/api/ping").status_code == 429

        signed_in = TestClient(app, cookies={"access_token": access_token})
        assert signed_in.get("/api/ping").status_code == 200
        assert set(key for _, key in limiter.hits) == {"testclient-anonymous", "testclient-user-1"}


@pytest.mark.parametrize("path", ["/docs", "/openapi.json", "/static/app.js", "/favicon.ico"])
def test_static_and_docs_paths_skip_policies(path, clock):
    limiter = AsyncRateLimiter([policy("general", limit=0, paths=("/",))], clock=clock)
    client = TestClient(make_app(limiter))

    assert client.get(path).status_code != 429
