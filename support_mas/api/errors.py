"""Structured error envelope for every API response.

    {"error": {"code": "session.not_found", "message": "...", "http_status": 404, "details": {}}}
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from support_mas.conversation.dynamic_rules import RuleRejectedError
from support_mas.runtime.memory import SessionNotFoundError

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    code: str
    message: str
    http_status: int
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    details: Optional[dict[str, Any]] = None,
) -> ErrorEnvelope:
    return ErrorEnvelope(
        error=ErrorDetail(
            code=code,
            message=message,
            http_status=status_code,
            details=details or {},
        )
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    details: Optional[dict[str, Any]] = None,
) -> HTTPException:
    """Build an HTTPException whose detail is already an envelope."""
    envelope = build_error_envelope(code, message, status_code, details)
    return HTTPException(status_code=status_code, detail=envelope.model_dump())


def _json(envelope: ErrorEnvelope) -> JSONResponse:
    return JSONResponse(content=envelope.model_dump(), status_code=envelope.error.http_status)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        return JSONResponse(content=detail, status_code=exc.status_code)
    return _json(build_error_envelope(
        code="http.exception",
        message=str(detail) if detail else "HTTP exception",
        status_code=exc.status_code,
    ))


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _json(build_error_envelope(
        code="validation.error",
        message="Validation failed",
        status_code=400,
        details={"errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
        ]},
    ))


async def _session_not_found_handler(request: Request, exc: SessionNotFoundError) -> JSONResponse:
    return _json(build_error_envelope(
        code="session.not_found",
        message=str(exc),
        status_code=404,
        details={"session_id": exc.session_id},
    ))


async def _rule_rejected_handler(request: Request, exc: RuleRejectedError) -> JSONResponse:
    return _json(build_error_envelope(
        code="rule.rejected",
        message=exc.reason,
        status_code=422,
        details={"prompt": exc.prompt},
    ))


async def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _json(build_error_envelope(
        code="internal.error",
        message="Internal server error",
        status_code=500,
    ))


def register_error_handlers(app: FastAPI) -> None:
    # Starlette raises its own HTTPException for unknown routes and methods.
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(SessionNotFoundError, _session_not_found_handler)
    app.add_exception_handler(RuleRejectedError, _rule_rejected_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
