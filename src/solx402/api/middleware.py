"""Starlette adapter that puts the payment gate in front of protected paths."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..gate import PaymentGate

logger = logging.getLogger(__name__)


payment_gate_requests_total = Counter(
    "payment_gate_requests_total",
    "Total requests handled by the payment gate",
    ["outcome"],
)

payment_gate_duration_seconds = Histogram(
    "payment_gate_duration_seconds",
    "Wall time spent deciding whether a request has paid",
    ["outcome"],
)


class PaymentGateMiddleware(BaseHTTPMiddleware):
    """Require an on-chain payment for requests under ``protected_paths``.

    Requests without valid proof get a 402 with a fresh payment requirement.
    Paid requests reach the route handler and carry the settlement header on
    the way out. The gate decision is exposed as ``request.state.payment``.
    """

    def __init__(
        self,
        app,
        gate: PaymentGate,
        protected_paths: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(app)
        self._gate = gate
        paths = (
            protected_paths
            if protected_paths is not None
            else gate.settings.protected_paths
        )
        self._protected_paths = tuple(path.rstrip("/") for path in paths if path)

    def _is_protected(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return False
        path = request.url.path
        return any(
            path == prefix or path.startswith(prefix + "/")
            for prefix in self._protected_paths
        )

    async def dispatch(self, request: Request, call_next: Callable):
        if not self._is_protected(request):
            return await call_next(request)

        start_time = time.perf_counter()
        decision = await self._gate.handle(request.headers)
        outcome = decision.outcome.value
        payment_gate_requests_total.labels(outcome=outcome).inc()
        payment_gate_duration_seconds.labels(outcome=outcome).observe(
            time.perf_counter() - start_time
        )

        if not decision.proceed:
            return JSONResponse(
                status_code=decision.status_code,
                content=decision.body,
                headers=decision.headers,
            )

        request.state.payment = decision
        response = await call_next(request)
        for name, value in decision.headers.items():
            response.headers[name] = value
        return response
