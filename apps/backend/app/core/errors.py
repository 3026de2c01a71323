"""
Error taxonomy and the handlers that render it.

Every error raised from a route is one of the classes below; the handlers turn
them into ``{"error", "code", "details"}`` bodies. Store failures are logged
with their cause and answered with a generic message.
"""
from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AnalyticsError(Exception):
    status_code: int = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AnalyticsError):
    status_code = 400


class Unauthenticated(AnalyticsError):
    status_code = 401


class InvalidCredential(AnalyticsError):
    status_code = 401


class NotFound(AnalyticsError):
    status_code = 404


class StoreError(AnalyticsError):
    status_code = 500


def error_body(status_code: int, message: str, details: Any = None) -> dict:
    body = {"error": message, "code": HTTPStatus(status_code).phrase}
    if details is not None:
        body["details"] = details
    return body


async def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("Store error on %s: %s", request.url.path, exc.message, exc_info=exc.__cause__)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, exc.message))

    logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, exc.details),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.info("Validation error on %s: %s", request.url.path, details)
    return JSONResponse(status_code=400, content=error_body(400, "Invalid request data", details))


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # read paths let SQLAlchemy errors escape; answer them like StoreError
    logger.error("Store error on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=error_body(500, "Internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AnalyticsError, analytics_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
