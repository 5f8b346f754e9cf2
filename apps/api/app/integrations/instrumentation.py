from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import Span

from app.context import get_correlation_id
from app.metrics import observe_provider_call


logger = logging.getLogger("app.integrations")
tracer = trace.get_tracer("app.integrations")


@contextmanager
def provider_call(provider: str, operation: str) -> Iterator[Span]:
    started = time.perf_counter()
    with tracer.start_as_current_span(f"provider.{operation}") as span:
        span.set_attribute("provider", provider)
        correlation_id = get_correlation_id()
        if correlation_id:
            span.set_attribute("correlation_id", correlation_id)
        try:
            yield span
        except Exception as exc:
            duration = time.perf_counter() - started
            observe_provider_call(provider, "error", duration)
            logger.warning(
                "provider.call_failed",
                extra={"provider": provider, "operation": operation, "error": str(exc)},
            )
            raise
        observe_provider_call(provider, "ok", time.perf_counter() - started)
