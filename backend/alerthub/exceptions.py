from typing import Any, Dict, Optional
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base for business errors; handlers turn it into the error envelope."""

    status_code = 400
    code = "APP_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details or {}


class ValidationError(AppException):
    """Malformed input. Raised before any I/O; never retried."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundOrDeleted(AppException):
    status_code = 404
    code = "NOT_FOUND"


class ClaimConflict(AppException):
    """The claim write matched no row: claimed by someone else, terminal, deleted or missing."""

    status_code = 409
    code = "CLAIM_CONFLICT"


class StorageError(AppException):
    status_code = 503
    code = "STORAGE_ERROR"
    retryable = True


class TransportError(AppException):
    """Webhook dispatch failed. Independent of the persisted state."""

    status_code = 502
    code = "TRANSPORT_ERROR"


def _build_error_payload(
    *,
    message: str,
    status_code: int,
    code: str = "APP_ERROR",
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    rid = request_id or str(uuid.uuid4())
    payload: Dict[str, Any] = {
        "success": False,
        "error": {
            "message": message,
            "code": code,
            **({"details": details} if details else {}),
        },
        "request_id": rid,
        "status_code": status_code,
    }
    return payload


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render every error with the same envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        code = "HTTP_ERROR"
        payload = _build_error_payload(
            message=message,
            status_code=exc.status_code,
            code=code,
            request_id=req_id,
        )
        logger.warning(
            "HTTPException: status=%s code=%s path=%s request_id=%s",
            exc.status_code,
            code,
            request.url.path,
            req_id,
        )
        return JSONResponse(status_code=exc.status_code, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        errors = exc.errors()
        payload = _build_error_payload(
            message="Request validation failed",
            status_code=422,
            code="VALIDATION_ERROR",
            details={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]},
            request_id=req_id,
        )
        logger.info(
            "ValidationError: path=%s errors=%d request_id=%s",
            request.url.path,
            len(errors),
            req_id,
        )
        return JSONResponse(status_code=422, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        # storage details stay in the logs
        details = None if isinstance(exc, StorageError) else exc.details
        payload = _build_error_payload(
            message=exc.message,
            status_code=exc.status_code,
            code=exc.code,
            details=details,
            request_id=req_id,
        )
        logger.warning(
            "AppException: status=%s code=%s path=%s request_id=%s",
            exc.status_code,
            exc.code,
            request.url.path,
            req_id,
        )
        return JSONResponse(status_code=exc.status_code, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        logger.exception("UnhandledException: path=%s request_id=%s", request.url.path, req_id)
        payload = _build_error_payload(
            message="Internal server error",
            status_code=500,
            code="INTERNAL_SERVER_ERROR",
            request_id=req_id,
        )
        return JSONResponse(status_code=500, content=payload, headers={"X-Request-ID": req_id})
