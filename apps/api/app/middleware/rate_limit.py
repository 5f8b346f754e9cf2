from __future__ import annotations

import math
import threading
import time
from typing import NamedTuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.api.errors import error_response
from app.core.auth import bearer_token, decode_token
from app.core.config import get_settings

_WINDOW_SECONDS = 60

_BILLABLE_PREFIXES = (
    "/api/enrich/",
    "/api/ai-writer/generate",
    "/api/message/generate",
    "/api/email/",
    "/api/verify-email",
    "/api/crm/import/",
    "/api/crm/export/",
)


def is_billable_path(path: str) -> bool:
    return path.startswith(_BILLABLE_PREFIXES)


class Decision(NamedTuple):
    allowed: bool
    retry_after: int


class _Bucket:
    __slots__ = ("level", "stamp")

    def __init__(self, level: float, stamp: float) -> None:
        self.level = level
        self.stamp = stamp


class CallerBuckets:
    """Refilling buckets keyed by (caller, route group)."""

    def __init__(self, window_seconds: int = _WINDOW_SECONDS) -> None:
        self.window_seconds = window_seconds
        self._guard = threading.Lock()
        self._buckets: dict[tuple[str, str], _Bucket] = {}

    def consume(self, caller: str, group: str, capacity: int) -> Decision:
        if capacity <= 0:
            return Decision(False, self.window_seconds)

        per_second = capacity / self.window_seconds
        now = time.monotonic()
        with self._guard:
            bucket = self._buckets.setdefault((caller, group), _Bucket(float(capacity), now))
            bucket.level = min(float(capacity), bucket.level + (now - bucket.stamp) * per_second)
            bucket.stamp = now
            if bucket.level >= 1.0:
                bucket.level -= 1.0
                return Decision(True, 0)
            return Decision(False, max(1, math.ceil((1.0 - bucket.level) / per_second)))

    def clear(self) -> None:
        with self._guard:
            self._buckets.clear()


_buckets = CallerBuckets()


def reset_rate_limiter() -> None:
    _buckets.clear()


def _caller_of(request: Request) -> str:
    token = bearer_token(request)
    claims = decode_token(token) if token else None
    if not claims or not claims.get("sub"):
        return "anonymous"
    return str(claims["sub"])


def _group_of(path: str) -> str:
    # "/api/enrich/search" -> "enrich"
    segments = [segment for segment in path.split("/") if segment]
    return segments[1] if len(segments) > 1 else "billable"


class BillableRateLimitMiddleware(BaseHTTPMiddleware):
    """Throttles credit-consuming POSTs per caller; free routes pass through."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        if settings.rate_limit_disabled or request.method != "POST" or not is_billable_path(request.url.path):
            return await call_next(request)

        decision = _buckets.consume(
            _caller_of(request),
            _group_of(request.url.path),
            settings.rate_limit_billable_per_minute,
        )
        if decision.allowed:
            return await call_next(request)

        return error_response(
            request,
            status_code=429,
            code="RATE_LIMITED",
            message="Too many requests",
            headers={"Retry-After": str(decision.retry_after)},
        )
