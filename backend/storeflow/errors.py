"""Application error taxonomy and the FastAPI handlers that render it.

Every error leaves the API in the same envelope::

    {"success": false,
     "error": {"message", "code", "status", "errors"?, "details"?, "timestamp"}}
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storeflow.config import get_settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: Any = None,
        errors: dict[str, list[str]] | None = None,
    ):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        self.details = details
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self, include_details: bool = False) -> dict:
        body: dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "status": self.status_code,
        }
        if self.errors:
            body["errors"] = self.errors
        if include_details and self.details is not None:
            body["details"] = self.details
        body["timestamp"] = datetime.now(timezone.utc).isoformat()
        return body


class BadRequest(ApiError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class Unauthorized(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class NotFound(ApiError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class MethodNotAllowed(ApiError):
    status_code = 405
    code = "METHOD_NOT_ALLOWED"
    default_message = "Method not allowed"


class Conflict(ApiError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class ValidationFailed(ApiError):
    """Schema or business-rule violation carrying per-field messages."""

    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, *, errors: dict[str, list[str]] | None = None, **kwargs):
        super().__init__(message, errors=errors or {}, **kwargs)

    @classmethod
    def field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, errors={field: [message]})


class BusinessRuleViolation(ApiError):
    """A well-formed request refused by a domain rule (distinct code per rule)."""

    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"
    default_message = "Request violates a business rule"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _render(exc: ApiError) -> JSONResponse:
    include_details = get_settings().debug
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict(include_details=include_details)},
    )


def validation_errors_to_fields(errors: list[dict]) -> dict[str, list[str]]:
    """Group pydantic error entries by dotted field path."""
    fields: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(loc) or "body"
        fields.setdefault(key, []).append(err.get("msg", "Invalid value"))
    return fields


_STATUS_TO_ERROR = {
    400: BadRequest,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    405: MethodNotAllowed,
    409: Conflict,
}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _render(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = validation_errors_to_fields(exc.errors())
        return _render(ValidationFailed(errors=fields))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("Constraint violation on %s %s: %s", request.method, request.url.path, exc.orig)
        return _render(Conflict("Request conflicts with existing data"))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error_cls = _STATUS_TO_ERROR.get(exc.status_code)
        if error_cls is None:
            error = ApiError(str(exc.detail))
            error.status_code = exc.status_code
            error.code = "HTTP_ERROR"
        else:
            message = exc.detail if isinstance(exc.detail, str) else None
            error = error_cls(message)
        return _render(error)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _render(ApiError(details=repr(exc)))
