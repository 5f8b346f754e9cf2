from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from app.api.errors import error_response
from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.events import InternalEvent, event_bus
from app.logging import configure_logging
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.rate_limit import BillableRateLimitMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware
from app.otel import get_fastapi_server_request_hook, setup_otel
from app.platform.ledger.errors import LedgerPersistenceError


configure_logging()
logger = logging.getLogger("app.lifecycle")
_subscriptions_registered = False

_credit_event_types = [
    "billing.credits.charged",
    "billing.credits.denied",
    "billing.credits.refunded",
]


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def _on_credit_event(event: InternalEvent) -> None:
    envelope = event.payload if isinstance(event.payload, dict) else {}
    logger.debug(
        "credit_event",
        extra={"event_name": event.name, "account_id": envelope.get("account_id")},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        for event_name in _credit_event_types:
            event_bus.subscribe(event_name, _on_credit_event)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(BillableRateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)


@app.exception_handler(LedgerPersistenceError)
async def ledger_persistence_error_handler(request: Request, exc: LedgerPersistenceError) -> JSONResponse:
    return error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="ledger_unavailable",
        message="Credit ledger is temporarily unavailable",
    )


if settings.otel_enabled:
    setup_otel(settings.otel_service_name, True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
