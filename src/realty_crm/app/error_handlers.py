"""Map domain errors onto HTTP responses.

ValidationError / InvalidStateTransition carry enough detail for the operator
to correct the request; NotFound reads as "no longer exists"; UpstreamUnavailable
tells the UI to offer a retry.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from realty_crm.app.config import get_settings
from realty_crm.domain.errors import (
    InvalidStateTransition,
    NotFound,
    UpstreamUnavailable,
    ValidationError,
)
from realty_crm.domain.schemas import ErrorResponse

logger = logging.getLogger(__name__)


def _error(status_code: int, body: ErrorResponse, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(422, ErrorResponse(error="validation_error", detail=str(exc), field=exc.field))


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return _error(404, ErrorResponse(error="not_found", detail=str(exc)))


async def invalid_transition_handler(request: Request, exc: InvalidStateTransition) -> JSONResponse:
    return _error(409, ErrorResponse(error="invalid_state_transition", detail=str(exc)))


async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    logger.warning("Upstream unavailable on %s %s: %s", request.method, request.url.path, exc)
    retry_after = get_settings().upstream_retry_after_seconds
    return _error(
        503,
        ErrorResponse(error="upstream_unavailable", detail=str(exc), retryable=True),
        headers={"Retry-After": str(retry_after)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(InvalidStateTransition, invalid_transition_handler)
    app.add_exception_handler(UpstreamUnavailable, upstream_unavailable_handler)
