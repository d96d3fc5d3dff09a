"""Error taxonomy and the centralized exception-to-envelope normalizer."""
from __future__ import annotations

import logging
import re
import traceback
from typing import Any, Optional

import jwt
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings

logger = logging.getLogger(__name__)

_UNIQUE_FIELD_PATTERNS = (
    # sqlite: UNIQUE constraint failed: products.sku
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    # postgres: Key (sku)=(ABC) already exists.
    re.compile(r"Key \((\w+)\)=\(.*\) already exists"),
    # mysql: Duplicate entry 'x' for key 'products.sku'
    re.compile(r"for key '(?:\w+\.)?(?:uq_\w+?_)?(\w+)'"),
)


class AppError(Exception):
    """Operational error with a fixed HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server Error"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        errors: Optional[list[dict[str, str]]] = None,
    ) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors
        super().__init__(self.message)


class ValidationFailedError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InvalidIdentifierError(NotFoundError):
    """A path identifier that can never match a stored record."""


class RateLimitExceededError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests from this IP, please try again later."


def parse_identifier(raw: str) -> int:
    """Convert a path identifier into a primary key."""

    if not raw.isdigit() or int(raw) <= 0:
        raise InvalidIdentifierError()
    return int(raw)


def error_body(message: str, errors: Optional[list[Any]] = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def field_errors(exc: RequestValidationError | ValidationError) -> list[dict[str, str]]:
    return [{"field": _field_name(err["loc"]), "message": err["msg"]} for err in exc.errors()]


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in _UNIQUE_FIELD_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _log_context(request: Request) -> dict[str, Any]:
    user = getattr(request.state, "user", None)
    return {
        "url": str(request.url.path),
        "method": request.method,
        "user": getattr(user, "id", "anonymous"),
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning("%s %s", exc.status_code, exc.message, extra=_log_context(request))
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", field_errors(exc)),
    )


async def schema_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    errors = field_errors(exc)
    message = ", ".join(f"{err['field']}: {err['message']}" for err in errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, errors),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    field = duplicate_field(exc)
    if field is None:
        logger.error("Integrity error: %s", exc.orig, extra=_log_context(request))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("Request conflicts with existing data"),
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(f"{field} already exists"),
    )


async def token_error_handler(request: Request, exc: jwt.PyJWTError) -> JSONResponse:
    message = "Token expired" if isinstance(exc, jwt.ExpiredSignatureError) else "Invalid token"
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=error_body(message),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra=_log_context(request))
    extra: dict[str, Any] = {}
    if not get_settings().is_production:
        extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Server Error", **extra),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the exception-to-envelope mapping on ``app``."""

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, schema_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(jwt.PyJWTError, token_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
