"""Error responses for Observer.

Every error is rendered as a Result body:

    {"messages": [{"code": "NotFound", "messageType": "Error",
                   "text": "key 'doc-1' not found", "timestamp": "..."}]}

Cache failures are mapped to status codes here; observer.cache knows
nothing about HTTP. A peer reads the status of this response back into the
same exception type (see observer.cache.peers), so the mapping has to stay
in step with PeerClient.fetch.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import NamedTuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from observer.cache.errors import CacheError, LoadCancelled, LoadError, LoadTimeout, NotFound

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    EXCEPTION = "Exception"


class Message(BaseModel):
    model_config = {"extra": "forbid", "populate_by_name": True}

    code: str
    message_type: MessageType = Field(alias="messageType")
    text: str
    timestamp: str | None = None


class Result(BaseModel):
    model_config = {"extra": "forbid"}

    messages: list[Message]


def error_result(code: str, text: str, message_type: MessageType = MessageType.ERROR) -> Result:
    """A single-message Result stamped with the current UTC time."""
    message = Message(
        code=code,
        message_type=message_type,
        text=text,
        timestamp=datetime.now(UTC).isoformat(),
    )
    return Result(messages=[message])


def error_response(status_code: int, result: Result) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=result.model_dump(by_alias=True))


class ApiError(HTTPException):
    """An HTTP error raised by a route, rendered as a Result."""

    def __init__(
        self,
        status_code: int,
        code: str,
        text: str,
        message_type: MessageType = MessageType.ERROR,
    ):
        super().__init__(status_code=status_code, detail=text)
        self.code = code
        self.text = text
        self.message_type = message_type

    def to_result(self) -> Result:
        return error_result(self.code, self.text, self.message_type)


class NotFoundError(ApiError):
    def __init__(self, resource_type: str, identifier: str):
        super().__init__(404, "NotFound", f"{resource_type} '{identifier}' not found")


class InjectedError(ApiError):
    """Failure requested by the client through ?error=<code>."""

    def __init__(self, status_code: int, text: str):
        super().__init__(status_code, "Injected", text)


class CacheErrorStatus(NamedTuple):
    status_code: int
    code: str
    message_type: MessageType


# Most specific first; the first isinstance match wins
CACHE_ERROR_STATUS: dict[type[CacheError], CacheErrorStatus] = {
    NotFound: CacheErrorStatus(404, "NotFound", MessageType.ERROR),
    LoadTimeout: CacheErrorStatus(504, "GatewayTimeout", MessageType.EXCEPTION),
    LoadCancelled: CacheErrorStatus(503, "ServiceUnavailable", MessageType.EXCEPTION),
    LoadError: CacheErrorStatus(502, "BadGateway", MessageType.EXCEPTION),
}

_UNMAPPED = CacheErrorStatus(500, "InternalServerError", MessageType.EXCEPTION)


def cache_error_status(exc: CacheError) -> CacheErrorStatus:
    for error_type, status in CACHE_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return _UNMAPPED


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.to_result())


async def cache_exception_handler(request: Request, exc: CacheError) -> JSONResponse:
    status = cache_error_status(exc)
    if status.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(
        status.status_code, error_result(status.code, exc.message, status.message_type)
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and parameters are 400s, not FastAPI's default 422."""
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return error_response(400, error_result("BadRequest", "; ".join(problems) or "Invalid request"))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(
        500,
        error_result("InternalServerError", "An unexpected error occurred", MessageType.EXCEPTION),
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(CacheError, cache_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, validation_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, generic_exception_handler)
