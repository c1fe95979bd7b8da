"""Request and correlation identifiers.

A client request fans out into at most one peer fetch. Both hops log with
the same correlation id: the peer client copies the id from the context
variable into the x-correlation-id header, and this middleware on the owner
picks it up again.

Inbound identifiers are only accepted if they look like identifiers, since
they end up verbatim in log lines and response headers.
"""

from __future__ import annotations

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from observer.observability.logging import correlation_id_var, log_context, request_id_var

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"
TRACE_ID_HEADER = "x-trace-id"

_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def accepted_id(value: str | None) -> str | None:
    """value if usable as an identifier, else None."""
    if value and _VALID_ID.match(value):
        return value
    return None


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Binds request_id and correlation_id for the duration of a request.

    The correlation id defaults to the request id, so a request that enters
    the cluster without one starts a new correlation.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = accepted_id(request.headers.get(REQUEST_ID_HEADER)) or uuid.uuid4().hex
        correlation_id = accepted_id(request.headers.get(CORRELATION_ID_HEADER)) or request_id
        request.state.request_id = request_id
        request.state.correlation_id = correlation_id

        request_token = request_id_var.set(request_id)
        correlation_token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
            trace_id = log_context().get("trace_id")
        finally:
            request_id_var.reset(request_token)
            correlation_id_var.reset(correlation_token)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        if trace_id:
            response.headers[TRACE_ID_HEADER] = trace_id
        return response
