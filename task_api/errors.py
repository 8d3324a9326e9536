"""
Error translation.

All failures leave the API as one JSON envelope::

    {"status": 400, "success": false, "message": "...", "errors": [...],
     "timestamp": "...", "path": "/api/tasks", "requestId": "..."}

Validation problems are 400, missing tasks or routes are 404, anything else
is a 500 whose details only reach the log.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .middleware import REQUEST_ID_HEADER
from .schemas import ErrorResponse, FieldError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Bad request", errors: Optional[List[FieldError]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[List[FieldError]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        status=status_code,
        message=message,
        errors=errors,
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        requestId=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def _log_fields(request: Request) -> dict:
    return {
        "path": request.url.path,
        "method": request.method,
        "request_id": getattr(request.state, "request_id", None),
    }


async def handle_invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
    logger.warning(
        "Validation error",
        extra={**_log_fields(request), "errors": [e.model_dump() for e in exc.errors]},
    )
    return error_response(request, exc.status_code, exc.message, errors=exc.errors)


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    logger.warning(exc.message, extra=_log_fields(request))
    return error_response(request, exc.status_code, exc.message)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append(FieldError(field=".".join(loc) or "body", message=error.get("msg", "Invalid value")))
    return await handle_invalid_input(request, InvalidInputError("Validation failed", errors=errors))


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = str(exc.detail)
    logger.warning(message, extra=_log_fields(request))
    return error_response(request, exc.status_code, message)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Internal server error", exc_info=exc, extra={**_log_fields(request), "error": str(exc)})
    response = error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidInputError, handle_invalid_input)
    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
