"""FastAPI middleware for request tracing, metrics and chaos injection"""

import asyncio
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from nova_sandbox.domain.models import ChaosMode
from nova_sandbox.infrastructure.observability.metrics import request_duration_histogram

logger = logging.getLogger(__name__)

CHAOS_EXEMPT_PREFIXES = ("/v1/sandbox", "/health", "/metrics", "/docs", "/openapi.json")

CORRUPT_BODY = '{"data": [{"id": null, "amount": "NaN", "balance": \x00}], "status": "ok'


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for distributed tracing"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        request_duration_histogram.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code,
        ).observe(duration)

        return response


def is_chaos_exempt(path: str) -> bool:
    return path == "/" or path.startswith(CHAOS_EXEMPT_PREFIXES)


class ChaosMiddleware(BaseHTTPMiddleware):
    """
    Misbehave on purpose according to the app's ChaosController.

    The sandbox control surface, health and metrics are never affected so
    chaos can always be switched off again.
    """

    async def dispatch(self, request: Request, call_next):
        chaos = getattr(request.app.state, "chaos", None)
        if chaos is None or chaos.mode == ChaosMode.NORMAL or is_chaos_exempt(request.url.path):
            return await call_next(request)

        mode = chaos.mode
        if mode == ChaosMode.LATENCY:
            delay = chaos.latency_seconds()
            logger.info("Chaos latency injected", extra={"path": request.url.path, "delay_s": delay})
            await asyncio.sleep(delay)
            return await call_next(request)

        if mode == ChaosMode.FLAKY:
            if not chaos.should_fail():
                return await call_next(request)
            chaos.record_failure()
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error", "code": "CHAOS_FLAKY_FAILURE"},
            )

        if mode == ChaosMode.MAINTENANCE:
            chaos.record_failure()
            return JSONResponse(
                status_code=503,
                content={"error": "Service Unavailable", "code": "BANK_MAINTENANCE", "retry_after": 300},
                headers={"Retry-After": "300"},
            )

        # corrupt
        chaos.record_failure()
        return Response(content=CORRUPT_BODY, status_code=200, media_type="application/json")
