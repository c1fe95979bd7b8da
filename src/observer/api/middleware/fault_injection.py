"""Latency and error injection for client resilience testing.

Requests to the document routes accept two optional query parameters:

- latency=<ms> sleeps that many milliseconds before handling;
  latency=random sleeps a random 0-999 ms.
- error=<code> answers with that HTTP error instead of handling the request,
  if the code is one of HTTP_ERRORS; error=random fails one request in ten
  with a random code from HTTP_ERRORS.

Usage:
    app.add_middleware(FaultInjectionMiddleware)
    GET /document/65f1...?latency=random&error=503
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from observer.api.errors import InjectedError

logger = logging.getLogger(__name__)

HTTP_ERRORS: dict[int, str] = {
    400: "400 Bad Request",
    401: "401 Unauthorized",
    403: "403 Forbidden",
    404: "404 Not Found",
    500: "500 Internal Server Error",
    501: "501 Not Implemented",
    502: "502 Bad Gateway",
    503: "503 Service Unavailable",
    504: "504 Gateway Timeout",
    505: "505 HTTP Version Not Supported",
    506: "506 Variant Also Negotiates",
    507: "507 Insufficient Storage",
    510: "510 Not Extended",
}

# Seeded once per process
_random = random.Random()


@dataclass
class FaultInjectionConfig:
    """Fault injection configuration."""

    # Path prefixes that honour the latency/error parameters
    path_prefixes: list[str] = field(default_factory=lambda: ["/document"])
    # Upper bound (exclusive) of latency=random, in milliseconds
    max_random_latency_ms: int = 1000
    # One in `random_error_odds` requests fails with error=random
    random_error_odds: int = 10


class FaultInjector:
    """Decides latency and errors from the query parameter values."""

    def __init__(self, config: FaultInjectionConfig, rng: random.Random | None = None):
        self.config = config
        self.rng = rng or _random

    def latency_ms(self, value: str) -> int:
        """Milliseconds to sleep; 0 for unparseable values."""
        if value == "random":
            return self.rng.randrange(self.config.max_random_latency_ms)
        try:
            return max(0, int(value))
        except ValueError:
            return 0

    def error_for(self, value: str) -> tuple[int, str] | None:
        """Status and message to fail with, or None to proceed."""
        if value == "random":
            if self.rng.randrange(self.config.random_error_odds) != 0:
                return None
            code = self.rng.choice(list(HTTP_ERRORS))
            return code, HTTP_ERRORS[code]
        try:
            code = int(value)
        except ValueError:
            return None
        if code in HTTP_ERRORS:
            return code, HTTP_ERRORS[code]
        return None


class FaultInjectionMiddleware(BaseHTTPMiddleware):
    """Applies the latency and error query parameters to matching paths."""

    def __init__(
        self,
        app: ASGIApp,
        config: FaultInjectionConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(app)
        self.injector = FaultInjector(config or FaultInjectionConfig(), rng)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not any(request.url.path.startswith(p) for p in self.injector.config.path_prefixes):
            return await call_next(request)

        latency = request.query_params.get("latency")
        if latency:
            delay_ms = self.injector.latency_ms(latency)
            if delay_ms:
                await asyncio.sleep(delay_ms / 1000)

        error = request.query_params.get("error")
        if error:
            injected = self.injector.error_for(error)
            if injected is not None:
                status_code, message = injected
                logger.error(f"error: {message}")
                exc = InjectedError(status_code, message)
                return JSONResponse(
                    status_code=status_code,
                    content=exc.to_result().model_dump(by_alias=True),
                )

        return await call_next(request)
