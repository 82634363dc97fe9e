"""
Global exception handlers.

    - AppError               -> {"message", "status", "error"} with its status
    - RequestValidationError -> 400 with field-level details
    - IntegrityError         -> 409 (a unique/foreign-key constraint raced us)
    - Exception              -> 500, never leaks internal details
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from blog_panel.exceptions import AppError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_app_error_handler(app)
    _register_validation_error_handler(app)
    _register_integrity_error_handler(app)
    _register_generic_error_handler(app)


def _register_app_error_handler(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "AppError: %s", exc.message,
            extra={"error_code": exc.error_case, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "Validation error on %s: %s", request.url.path, exc.errors(),
            extra={"error_code": "validation_error", "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_integrity_error_handler(app: FastAPI) -> None:

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(
            "Integrity error on %s: %s", request.url.path, exc.orig,
            extra={"error_code": "conflict", "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "message": "Request conflicts with existing data",
                "status": status.HTTP_409_CONFLICT,
                "error": "conflict",
            },
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception on %s: %s", request.url.path, exc,
            exc_info=True,
            extra={"error_code": "internal_error", "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "message": "An unexpected error occurred",
                "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "error": "internal_error",
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "message": "Invalid request data",
        "status": status.HTTP_400_BAD_REQUEST,
        "error": "validation_error",
        "details": [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ],
    }
