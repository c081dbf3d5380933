# readiness_auth/shared/middleware/rate_limiting_middleware.py

"""
Middleware for request rate limiting and account lockout.

Each request is checked against every policy whose routes it matches.
Counters are kept in memory per (policy, client key), where the client key
is "<ip>-<user_id|anonymous>". Policies that only count failures record
the request after the response, when its status is known.
"""

import math
import time
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, FrozenSet, List, Optional, Tuple
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SKIP_PREFIXES = ("/static/", "/assets/", "/favicon.ico", "/docs", "/redoc", "/openapi.json")
SKIP_PATHS = {"/health", "/api/health"}

OAUTH_LOGIN_PATHS = ("/api/auth/google/login", "/api/auth/microsoft/login")

SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class RateLimitPolicy:
    """
    One rate limit.

    Attributes:
        name: Policy identifier
        window_seconds: Sliding window length
        max_requests: Limit in production
        dev_max_requests: Limit in every other environment
        code: Error code returned when the limit is hit
        message: Error message returned when the limit is hit
        paths: Exact paths, or prefixes when ending with "/". An entry may be
            prefixed with a method, e.g. "PUT /api/user/me"
        methods: HTTP methods covered (None for all)
        failures_only: Count only responses with status >= 400
        status_code: Status returned when the limit is hit
    """
    name: str
    window_seconds: int
    max_requests: int
    dev_max_requests: int
    code: str
    message: str
    paths: Tuple[str, ...]
    methods: Optional[FrozenSet[str]] = None
    failures_only: bool = False
    status_code: int = status.HTTP_429_TOO_MANY_REQUESTS

    def limit(self, production: bool) -> int:
        return self.max_requests if production else self.dev_max_requests

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method not in self.methods:
            return False
        for entry in self.paths:
            rule_method, _, route = entry.rpartition(" ")
            if rule_method and rule_method != method:
                continue
            matched = path.startswith(route) if route.endswith("/") else path == route
            if matched:
                return True
        return False


def build_policies(settings: Settings) -> List[RateLimitPolicy]:
    """The policy table; lockout values come from settings."""
    post = frozenset({"POST"})
    return [
        RateLimitPolicy(
            name="general",
            window_seconds=15 * 60,
            max_requests=100,
            dev_max_requests=1000,
            code="RATE_LIMIT_EXCEEDED",
            message="Too many requests from this IP, please try again later.",
            paths=("/api/",),
        ),
        RateLimitPolicy(
            name="account_lockout",
            window_seconds=settings.LOCKOUT_DURATION_MINUTES * 60,
            max_requests=settings.MAX_LOGIN_ATTEMPTS,
            dev_max_requests=max(settings.MAX_LOGIN_ATTEMPTS, 20),
            code="ACCOUNT_LOCKED",
            message="Account temporarily locked due to too many failed attempts. Please try again later.",
            paths=("/api/auth/login",),
            methods=post,
            failures_only=True,
            status_code=status.HTTP_423_LOCKED,
        ),
        RateLimitPolicy(
            name="auth",
            window_seconds=15 * 60,
            max_requests=5,
            dev_max_requests=20,
            code="AUTH_RATE_LIMIT_EXCEEDED",
            message="Too many authentication attempts, please try again later.",
            paths=("/api/auth/login",) + OAUTH_LOGIN_PATHS,
            methods=post,
            failures_only=True,
        ),
        RateLimitPolicy(
            name="registration",
            window_seconds=60 * 60,
            max_requests=3,
            dev_max_requests=10,
            code="REGISTRATION_RATE_LIMIT_EXCEEDED",
            message="Too many registration attempts, please try again later.",
            paths=("/api/auth/register",),
            methods=post,
        ),
        RateLimitPolicy(
            name="password_reset",
            window_seconds=60 * 60,
            max_requests=3,
            dev_max_requests=20,
            code="PASSWORD_RESET_RATE_LIMIT_EXCEEDED",
            message="Too many password reset attempts, please try again later.",
            paths=("/api/auth/password-reset/",),
        ),
        RateLimitPolicy(
            name="sensitive",
            window_seconds=5 * 60,
            max_requests=10,
            dev_max_requests=50,
            code="SENSITIVE_OPERATIONS_RATE_LIMIT_EXCEEDED",
            message="Too many sensitive operations, please try again later.",
            paths=(
                "/api/auth/rotate",
                "/api/auth/logout-all",
                "/api/user/google/",
                "/api/user/microsoft/",
                "PUT /api/user/me",
            ),
        ),
    ]


@dataclass
class RateLimitDecision:
    """Result of checking one request against its policies."""
    allowed: bool
    policy: Optional[RateLimitPolicy] = None
    limit: Optional[int] = None
    remaining: Optional[int] = None
    retry_after: int = 0


class AsyncRateLimiter:
    """
    In-memory sliding-window rate limiter.

    Structure: {(policy name, client key): deque([timestamp, ...])}

    Buckets are pruned as they are read, and every `sweep_interval` seconds
    all of them are swept so clients that never return do not accumulate.
    """

    def __init__(
            self,
            policies: List[RateLimitPolicy],
            production: bool = False,
            clock: Callable[[], float] = time.time,
            sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        self.policies = policies
        self.production = production
        self.clock = clock
        self.hits: Dict[Tuple[str, str], Deque[float]] = {}
        self.windows = {p.name: p.window_seconds for p in policies}
        self.sweep_interval = sweep_interval
        self.last_sweep = clock()

    def policies_for(self, method: str, path: str) -> List[RateLimitPolicy]:
        return [p for p in self.policies if p.matches(method, path)]

    def _window(self, policy: RateLimitPolicy, key: str) -> Deque[float]:
        """Return the hit window for (policy, key) with old entries dropped."""
        bucket = (policy.name, key)
        hits = self.hits.get(bucket)
        if hits is None:
            return deque()
        cutoff = self.clock() - policy.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self.hits[bucket]
        return hits

    def check(self, policies: List[RateLimitPolicy], key: str) -> RateLimitDecision:
        """
        Check a request against its policies without recording it.

        Returns:
            The first exceeded policy, or the tightest remaining budget when allowed
        """
        if self.clock() - self.last_sweep >= self.sweep_interval:
            self.sweep()

        decision = RateLimitDecision(allowed=True)
        for policy in policies:
            limit = policy.limit(self.production)
            hits = self._window(policy, key)
            if len(hits) >= limit:
                oldest = hits[0] if hits else self.clock()
                retry_after = math.ceil(oldest + policy.window_seconds - self.clock())
                return RateLimitDecision(
                    allowed=False,
                    policy=policy,
                    limit=limit,
                    remaining=0,
                    retry_after=max(1, retry_after),
                )
            # Account for the current request in the remaining budget
            remaining = limit - len(hits) - 1
            if decision.remaining is None or remaining < decision.remaining:
                decision = RateLimitDecision(allowed=True, policy=policy, limit=limit, remaining=max(0, remaining))
        return decision

    def record(self, policy: RateLimitPolicy, key: str) -> None:
        self.hits.setdefault((policy.name, key), deque()).append(self.clock())

    def sweep(self) -> int:
        """
        Drop expired hits from every bucket and remove the empty buckets.

        Returns:
            Number of buckets removed
        """
        now = self.clock()
        removed = 0
        for bucket, hits in list(self.hits.items()):
            cutoff = now - self.windows.get(bucket[0], 0)
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if not hits:
                del self.hits[bucket]
                removed += 1
        self.last_sweep = now
        if removed:
            logger.debug("Rate limiter sweep removed %d idle buckets", removed)
        return removed

    def reset(self) -> None:
        self.hits.clear()


def normalize_ip(ip: str) -> str:
    return ip.replace(":", "-").replace(".", "-")


class AsyncRateLimitingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that enforces the rate-limit and lockout policies.
    """

    def __init__(self, app, limiter: Optional[AsyncRateLimiter] = None, settings: Optional[Settings] = None):
        super().__init__(app)
        settings = settings or default_settings
        self.limiter = limiter or AsyncRateLimiter(build_policies(settings), production=settings.is_production)

    @staticmethod
    def client_key(request: Request) -> str:
        """Rate-limit key: "<ip>-<user_id|anonymous>"."""
        client_ip = request.client.host if request.client else "unknown"
        user_id = "anonymous"
        token_service = getattr(request.app.state, "token_service", None)
        token = request.cookies.get("access_token")
        if token_service is not None and token:
            payload = token_service.verify_access_token(token)
            if payload is not None:
                user_id = payload.user_id
        return f"{normalize_ip(client_ip)}-{user_id}"

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path in SKIP_PATHS or path.startswith(SKIP_PREFIXES):
            return await call_next(request)

        policies = self.limiter.policies_for(request.method, path)
        if not policies:
            return await call_next(request)

        key = self.client_key(request)
        decision = self.limiter.check(policies, key)

        if not decision.allowed:
            policy = decision.policy
            logger.warning(f"Rate limit '{policy.name}' exceeded for {key} on path: {path}")
            return JSONResponse(
                status_code=policy.status_code,
                content={"detail": policy.message, "code": policy.code, "errors": None},
                headers={
                    "Retry-After": str(decision.retry_after),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        for policy in policies:
            if not policy.failures_only:
                self.limiter.record(policy, key)

        response = await call_next(request)

        # Failed attempts count towards the failure-only policies (auth, lockout)
        if response.status_code >= 400:
            for policy in policies:
                if policy.failures_only:
                    self.limiter.record(policy, key)

        if decision.limit is not None:
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

        return response
