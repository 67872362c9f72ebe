"""Global exception handlers — translate domain errors to HTTP responses.

Query failures travel inside the ``QueryOutcome`` body; the status code for
them comes from :data:`STATUS_BY_KIND`.  Everything else raised by a route
is mapped here onto the ``{"status": "error", "message": "..."}`` envelope.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from repo_qa.domain.entities import ErrorKind
from repo_qa.domain.exceptions import (
    AuthRequiredError,
    GitHubApiError,
    GitHubNetworkError,
    InvalidRepositoryError,
    LlmAuthError,
    LlmError,
    LlmNetworkError,
    NotFoundError,
    RateLimitedOrForbiddenError,
    RepoQaError,
    UnauthorizedError,
    UnsupportedProviderError,
)

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.REPOSITORY_NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NETWORK_ERROR: 503,
    ErrorKind.LLM_AUTH_ERROR: 401,
    ErrorKind.LLM_ERROR: 502,
    ErrorKind.UNSUPPORTED_PROVIDER: 400,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.GITHUB_ERROR: 502,
    ErrorKind.INTERNAL_ERROR: 500,
}

_EXCEPTION_STATUS: list[tuple[type[RepoQaError], int]] = [
    (InvalidRepositoryError, 400),
    (AuthRequiredError, 401),
    (UnauthorizedError, 401),
    (NotFoundError, 404),
    (RateLimitedOrForbiddenError, 429),
    (GitHubNetworkError, 503),
    (GitHubApiError, 502),
    (UnsupportedProviderError, 400),
    (LlmAuthError, 401),
    (LlmNetworkError, 503),
    (LlmError, 502),
]


def status_for_kind(kind: ErrorKind | None) -> int:
    """HTTP status of a ``QueryOutcome``: 200 on success."""
    if kind is None:
        return 200
    return STATUS_BY_KIND.get(kind, 500)


def status_for_exception(exc: RepoQaError) -> int:
    for exc_type, code in _EXCEPTION_STATUS:
        if isinstance(exc, exc_type):
            return code
    return 500


def _error_json(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application."""

    @app.exception_handler(RepoQaError)
    async def domain_handler(request: Request, exc: RepoQaError) -> JSONResponse:
        status_code = status_for_exception(exc)
        if status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        else:
            logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return _error_json(status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problems = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        ]
        return _error_json(422, "; ".join(problems))

    @app.exception_handler(Exception)
    async def generic_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s", request.url.path)
        return _error_json(500, "An unexpected error occurred. Please try again later.")
