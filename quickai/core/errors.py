"""Error taxonomy and FastAPI handlers.

Every caller-facing failure is rendered as the same envelope:

    {"success": false, "message": "...", "error": {"code": "...", "request_id": "..."}}
"""

import logging
from typing import Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from quickai.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class AuthError(AppError):
    code = "unauthorized"
    status_code = 401


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PlanRequiredError(AppError):
    """Raised when a feature requires the premium plan."""
    code = "plan_required"
    status_code = 403


class LimitReachedError(AppError):
    """Raised when a free-plan user has exhausted the free usage quota."""
    code = "limit_reached"
    status_code = 403


class PayloadTooLargeError(AppError):
    code = "payload_too_large"
    status_code = 413


class ProviderError(AppError):
    """Upstream provider call failed."""
    code = "provider_failure"
    status_code = 500

    def __init__(self, message: str, *, provider: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    code = "provider_unavailable"


class ProviderTimeoutError(ProviderError):
    code = "provider_timeout"


class PersistenceError(AppError):
    """Writing a record failed. Logged by callers, never rendered."""
    code = "persistence_failure"
    status_code = 500


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "success": False,
        "message": message,
        "error": {"code": code, "request_id": request_id},
    }


def _respond(status_code: int, code: str, message: str, rid: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=error_payload(code, message, rid))
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logging.getLogger("quickai").log(
        log_level,
        f"app.error {exc.code}: {exc.message}",
        extra={"request_id": rid, "error_code": exc.code, "status": exc.status_code},
    )
    return _respond(exc.status_code, exc.code, exc.message, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "HTTP error"
    logging.getLogger("quickai").warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _respond(exc.status_code, code, message, rid)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "form"))
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    logging.getLogger("quickai").warning(
        "request.invalid",
        extra={"request_id": rid, "error_code": "validation_error", "status": 400},
    )
    return _respond(400, "validation_error", message, rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logging.getLogger("quickai").error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    return _respond(500, "internal_error", "Unexpected error", rid)
