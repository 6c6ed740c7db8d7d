"""
Error envelope handlers.

Every domain error leaves the API as
``{"message", "code", "kind", "retryable", "details"}`` with the status code
the exception class declares.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .core.exceptions import (
    DomainException,
    ErrorKind,
    RepositoryException,
    ServiceException,
    ValidationException,
)
from .schemas.base_responses import ErrorResponse

logger = logging.getLogger(__name__)


def _domain_response(exc: DomainException) -> JSONResponse:
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(**exc.to_dict()).model_dump(mode="json"),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.kind == ErrorKind.INTERNAL:
            logger.error(
                "Internal error on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                extra={"code": exc.code},
            )
        return _domain_response(exc)

    @app.exception_handler(RepositoryException)
    async def repository_exception_handler(
        request: Request, exc: RepositoryException
    ) -> JSONResponse:
        logger.error("Repository failure on %s %s: %s", request.method, request.url.path, exc)
        return _domain_response(ServiceException("Internal server error"))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        error = ValidationException("Validation failed", details={"errors": errors})
        return _domain_response(error)
