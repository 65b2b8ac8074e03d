"""
Error types and the normalized error response.

Every non-2xx JSON response from the API has the same body:

    {"error": {"code": ..., "message": ..., "request_id": ...}, "detail": ...}

and carries the request id in the ``x-request-id`` header. ``detail``
duplicates the message for clients that only read FastAPI's default key.
"""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.requests import Request

from ddui.core.logging import get_request_id


logger = logging.getLogger("ddui.errors")


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
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.status_code = status_code or self.status_code
        self.request_id = request_id


class FeatureNotEntitledError(AppError):
    """The active license does not grant a gated capability (e.g. ci_api)."""

    code = "feature_not_entitled"
    status_code = 403

    def __init__(self, feature: str, edition: str, *, request_id: Optional[str] = None):
        super().__init__(
            f"Feature '{feature}' is not included in the {edition} edition",
            request_id=request_id,
        )
        self.feature = feature
        self.edition = edition


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def error_response(
    status_code: int,
    code: str,
    message: str,
    request_id: str,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }
    body.update(extra or {})
    return JSONResponse(status_code=status_code, content=body, headers={"x-request-id": request_id})


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id(request)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "status": exc.status_code},
    )
    return error_response(exc.status_code, exc.code, exc.message, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return error_response(exc.status_code, code, str(exc.detail or "HTTP error"), rid)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _request_id(request)
    # ctx may hold exception objects; keep only the JSON-safe parts.
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "invalid_request", "status": 422})
    return error_response(422, "invalid_request", "Request body failed validation", rid, {"errors": errors})


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return error_response(500, "internal_error", "Unexpected error", rid)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
