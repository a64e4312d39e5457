"""Error normalization and handlers."""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Optional
from uuid import uuid4

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from sitepress.core.logging import get_request_id

logger = logging.getLogger("sitepress")


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.headers = headers or {}


class BadRequestError(AppError, ValueError):
    code = "bad_request"
    status_code = 400


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(AppError, LookupError):
    """Resource is missing or not owned by the caller; the two are never told apart."""
    code = "not_found"
    status_code = 404


class MethodNotAllowedError(AppError):
    code = "method_not_allowed"
    status_code = 405


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class PersistenceError(AppError):
    code = "internal_error"
    status_code = 500


@dataclass(frozen=True)
class InvalidationWarning:
    """Non-fatal notice that one hostname could not be invalidated."""

    hostname: str
    slug: Optional[str]
    reason: str

    def to_dict(self) -> dict:
        return asdict(self)


_HTTP_CODES = {401: "unauthorized", 404: "not_found", 405: "method_not_allowed"}

GENERIC_SERVER_MESSAGE = "Unexpected error"


def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def error_response(
    rid: str,
    status_code: int,
    code: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """House error body: `{"error": {code, message, request_id}, "detail": message}`."""
    response = JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "request_id": rid},
            "detail": message,
        },
        headers=headers or None,
    )
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id_for(request)
    server_side = exc.status_code >= 500
    logger.log(
        logging.ERROR if server_side else logging.WARNING,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    message = GENERIC_SERVER_MESSAGE if server_side else exc.message
    return error_response(rid, exc.status_code, exc.code, message, exc.headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    rid = _request_id_for(request)
    code = _HTTP_CODES.get(exc.status_code, "http_error")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return error_response(rid, exc.status_code, code, exc.detail or "HTTP error", getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    rid = _request_id_for(request)
    fields = sorted({".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()})
    message = f"Bad request. Invalid fields: {', '.join(fields)}" if fields else "Bad request"
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "bad_request", "status": 400})
    return error_response(rid, 400, "bad_request", message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id_for(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return error_response(rid, 500, "internal_error", GENERIC_SERVER_MESSAGE)
