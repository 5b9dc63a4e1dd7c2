from __future__ import annotations

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from code_reader.api.errors import APIError
from code_reader.flow.errors import FlowNotFound
from code_reader.orchestrator.coordinator import CoordinatorError


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    trace_id = getattr(request.state, "trace_id", None)
    response = JSONResponse(status_code=status_code, content={**content, "trace_id": trace_id})
    if trace_id:
        response.headers["X-Trace-Id"] = trace_id
    return response


def register_exception_handlers(app) -> None:
    logger = logging.getLogger(__name__)

    @app.exception_handler(RequestValidationError)
    async def handle_validation(request: Request, exc: RequestValidationError):
        return _error_response(request, 422, {"error": "validation_error", "details": exc.errors()})

    @app.exception_handler(FlowNotFound)
    async def handle_not_found(request: Request, exc: FlowNotFound):
        return _error_response(request, 404, {"error": exc.code, "message": str(exc)})

    @app.exception_handler(CoordinatorError)
    async def handle_coordinator(request: Request, exc: CoordinatorError):
        return _error_response(request, exc.status_code, {"error": exc.code, "message": str(exc)})

    @app.exception_handler(APIError)
    async def handle_api_error(request: Request, exc: APIError):
        return _error_response(request, exc.status_code, {"error": exc.code, "message": str(exc)})

    @app.exception_handler(Exception)
    async def handle_unknown(request: Request, exc: Exception):  # noqa: ARG001
        trace_id = getattr(request.state, "trace_id", None)
        logger.exception("Unhandled error", extra={"trace_id": trace_id, "path": request.url.path})
        return _error_response(request, 500, {"error": "internal_error"})
