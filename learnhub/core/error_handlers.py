"""
Exception -> HTTP translation
The only place where domain errors become status codes and JSON bodies.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnhub.core.exceptions import AppException

logger = logging.getLogger(__name__)


def error_response(status_code: int, error_code: str, message: str, details: dict = None) -> JSONResponse:
    content = {"success": False, "error": message, "code": error_code}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s",
                request.method,
                request.url.path,
                exc.message,
                extra={"error_code": exc.error_code, "details": exc.details},
            )
        else:
            logger.info(
                "%s %s rejected (%s): %s",
                request.method,
                request.url.path,
                exc.error_code,
                exc.message,
            )
        response = error_response(exc.status_code, exc.error_code, exc.message, exc.details)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        logger.info("Validation error on %s %s: %s", request.method, request.url.path, errors)
        message = "; ".join(f"{e['field']}: {e['message']}" for e in errors) or "Invalid request"
        return error_response(status.HTTP_400_BAD_REQUEST, "validation_error", message, {"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # routing 404/405 and any stray HTTPException keep the same envelope
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(exc.status_code, "http_error", message)

    @app.exception_handler(PyMongoError)
    async def database_exception_handler(request: Request, exc: PyMongoError):
        logger.error(
            "Database error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "A database error occurred. Please try again later.",
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled %s on %s %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred. Please try again later.",
        )
