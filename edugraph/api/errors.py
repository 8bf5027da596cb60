from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from edugraph.core.correlation import get_correlation_id
from edugraph.core.errors import DomainError
from edugraph.core.logging import logger


def http_error_response(status_code: int, message: str, details: Any = None, code: str | None = None):
    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_code,
            "code": code,
            "message": message,
            "details": details,
        },
    )


def domain_exception_handler(request: Request, exc: DomainError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("domain_error", code=exc.code, message=exc.message, ids=exc.ids,
        path=request.url.path, correlation_id=get_correlation_id())
    details = {"ids": exc.ids} if exc.ids else None
    return http_error_response(exc.status_code, exc.message, details=details, code=exc.code)


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning("http_exception", status=exc.status_code, detail=exc.detail, path=request.url.path)
    return http_error_response(exc.status_code, str(exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError | ValidationError):
    logger.warning("validation_error", path=request.url.path, errors=len(exc.errors()))
    return http_error_response(400, "Validation error", details=jsonable_encoder(exc.errors()), code="bad_request")


def global_exception_handler(request: Request, exc: Exception):
    logger.error("unexpected_error", error=str(exc), error_type=type(exc).__name__,
                 path=request.url.path, correlation_id=get_correlation_id())
    return http_error_response(500, "Internal server error", code="internal_error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
