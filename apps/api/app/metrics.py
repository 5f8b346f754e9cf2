from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

credit_charges_total = Counter(
    "credit_charges_total",
    "Metered charge attempts by operation and outcome",
    ["operation", "outcome"],
)

credits_debited_total = Counter(
    "credits_debited_total",
    "Total credits debited by operation",
    ["operation"],
)

credits_granted_total = Counter(
    "credits_granted_total",
    "Total credits granted by reason",
    ["reason"],
)

ledger_failures_total = Counter(
    "ledger_failures_total",
    "Ledger mutations that failed to persist",
    ["kind"],
)

provider_calls_total = Counter(
    "provider_calls_total",
    "External provider calls by provider and status",
    ["provider", "status"],
)

provider_call_duration_seconds = Histogram(
    "provider_call_duration_seconds",
    "External provider call duration in seconds",
    ["provider"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_charge(operation: str, outcome: str, amount: int = 0) -> None:
    credit_charges_total.labels(operation=operation, outcome=outcome).inc()
    if outcome == "charged" and amount > 0:
        credits_debited_total.labels(operation=operation).inc(amount)


def observe_credits_granted(reason: str, amount: int) -> None:
    if amount > 0:
        credits_granted_total.labels(reason=reason).inc(amount)


def observe_ledger_failure(kind: str) -> None:
    ledger_failures_total.labels(kind=kind).inc()


def observe_provider_call(provider: str, status: str, duration: float) -> None:
    provider_calls_total.labels(provider=provider, status=status).inc()
    provider_call_duration_seconds.labels(provider=provider).observe(duration)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
