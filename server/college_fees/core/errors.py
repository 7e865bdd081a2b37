"""
college_fees/core/errors.py
Fee ledger exceptions and their HTTP rendering
"""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class FeeError(Exception):
    """
    Base class for every rejected fee operation.

    Carries a human-readable message plus the HTTP status the API layer
    answers with. Validation and authorization errors are never retried.
    """

    status_code: int = 400
    code: str = "FEE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}')"


class InvalidAmount(FeeError):
    code = "INVALID_AMOUNT"


class InvalidTransition(FeeError):
    code = "INVALID_TRANSITION"


class AlreadySettled(FeeError):
    status_code = 409
    code = "ALREADY_SETTLED"


class MissingScope(FeeError):
    code = "MISSING_SCOPE"


class OutOfScope(FeeError):
    status_code = 403
    code = "OUT_OF_SCOPE"


class Forbidden(FeeError):
    status_code = 403
    code = "FORBIDDEN"


class UnknownStudent(FeeError):
    status_code = 404
    code = "UNKNOWN_STUDENT"


class NotFound(FeeError):
    status_code = 404
    code = "NOT_FOUND"


class StorageFailure(FeeError):
    status_code = 500
    code = "STORAGE_FAILURE"


class AuthenticationFailed(FeeError):
    status_code = 401
    code = "AUTHENTICATION_FAILED"


async def fee_error_handler(request: Request, exc: FeeError) -> JSONResponse:
    """Render a FeeError as {"error": ..., "code": ...}"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation failed",
            "code": "VALIDATION_ERROR",
            "details": jsonable_encoder(exc.errors()),
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FeeError, fee_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = [
    "FeeError",
    "InvalidAmount",
    "InvalidTransition",
    "AlreadySettled",
    "MissingScope",
    "OutOfScope",
    "Forbidden",
    "UnknownStudent",
    "NotFound",
    "StorageFailure",
    "AuthenticationFailed",
    "register_error_handlers",
]
