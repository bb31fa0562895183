"""Exception handlers rendering every failure as ``{error, code, details}``."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentic_workflow.core.errors import AppException, ValidationError

logger = logging.getLogger(__name__)


def error_response(message: str, code: str, status_code: int, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code, "details": details or {}},
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        errors.append(f"{loc}: {error['msg']}")
    wrapped = ValidationError("Validation error", details={"errors": errors})
    return JSONResponse(status_code=wrapped.status_code, content=wrapped.to_envelope())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response("Not Found", "ENDPOINT_NOT_FOUND", 404, {"path": request.url.path})
    return error_response(str(exc.detail), "HTTP_ERROR", exc.status_code)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        "Internal Server Error",
        "SERVER_ERROR",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"message": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
