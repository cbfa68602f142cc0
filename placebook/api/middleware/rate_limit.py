"""
Fixed-window rate limiting.

Login and register POSTs are counted per client IP against
``rate_limit_auth_per_minute``. Every other request under the API prefix
is counted per user (the bearer token's subject) or, without a usable
token, per IP against ``rate_limit_api_per_minute``.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from placebook.config import Settings
from placebook.logging_config import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60
STALE_AFTER_SECONDS = 2 * 60 * 60
AUTH_PATHS = frozenset(("/auth/login", "/auth/register"))


@dataclass
class Window:
    started: float
    hits: int = 0


class FixedWindowCounter:
    """Hit counts per key, reset every ``window_seconds``. Single process only."""

    def __init__(self, window_seconds: int = WINDOW_SECONDS):
        self.window_seconds = window_seconds
        self.windows: dict[str, Window] = {}
        self.last_prune = time.monotonic()

    def hit(self, key: str, limit: int) -> bool:
        """Count a hit for ``key``; False once ``limit`` is reached in this window."""
        now = time.monotonic()
        window = self.windows.get(key)
        if window is None or now - window.started >= self.window_seconds:
            window = self.windows[key] = Window(started=now)
        if window.hits >= limit:
            return False
        window.hits += 1
        return True

    def prune(self, max_age: float = STALE_AFTER_SECONDS) -> None:
        now = time.monotonic()
        self.last_prune = now
        for key in [k for k, w in self.windows.items() if now - w.started > max_age]:
            del self.windows[key]

    def maybe_prune(self, max_age: float = STALE_AFTER_SECONDS) -> bool:
        """Prune at most once per window; True if a prune ran."""
        if time.monotonic() - self.last_prune < self.window_seconds:
            return False
        self.prune(max_age)
        return True


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def token_subject(request: Request, settings: Settings) -> Optional[str]:
    """Subject of a bearer token that verifies; the route gate still runs its own check."""
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        payload = jwt.decode(token.strip(), settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    return payload.get("sub") or None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Answers 429 once a caller exceeds its per-minute budget."""

    def __init__(self, app: ASGIApp, settings: Settings):
        super().__init__(app)
        self.settings = settings
        self.counter = FixedWindowCounter()

    def classify(self, request: Request) -> tuple[str, int]:
        """Counter key and limit for ``request``."""
        relative = request.url.path[len(self.settings.api_prefix):]
        if request.method == "POST" and relative in AUTH_PATHS:
            return f"auth:{client_ip(request)}", self.settings.rate_limit_auth_per_minute
        caller = token_subject(request, self.settings) or client_ip(request)
        return f"api:{caller}", self.settings.rate_limit_api_per_minute

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.settings.rate_limit_enabled or not request.url.path.startswith(self.settings.api_prefix):
            return await call_next(request)

        self.counter.maybe_prune()
        key, limit = self.classify(request)
        if not self.counter.hit(key, limit):
            logger.warning("Rate limit exceeded", extra={"key": key.split(":", 1)[0], "path": request.url.path})
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests. Please try again later.", "code": "RATE_LIMITED"},
            )
        return await call_next(request)
