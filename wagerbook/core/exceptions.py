from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None, code: str = "BAD_REQUEST"):
        super().__init__(message, code=code, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InsufficientFundsError(BadRequestError):
    def __init__(self, message: str = "Insufficient balance", details: dict[str, Any] | None = None):
        super().__init__(message, details=details, code="INSUFFICIENT_FUNDS")


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized", code: str = "UNAUTHORIZED"):
        super().__init__(message, code=code, status_code=status.HTTP_401_UNAUTHORIZED)


class UnauthenticatedError(UnauthorizedError):
    """No credential was supplied."""

    def __init__(self, message: str = "No token provided"):
        super().__init__(message, code="UNAUTHENTICATED")


class InvalidCredentialError(UnauthorizedError):
    """A credential was supplied but is malformed, tampered with or expired."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="INVALID_CREDENTIAL")


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None, code: str = "CONFLICT"):
        super().__init__(message, code=code, status_code=status.HTTP_409_CONFLICT, details=details)


class DuplicateIdentityError(ConflictError):
    def __init__(
        self,
        message: str = "Username, email, or phone number already exists",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details, code="DUPLICATE_IDENTITY")


class StorageFailureError(AppError):
    """The store is unreachable or errored. Driver detail is logged, never returned."""

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message, code="STORAGE_FAILURE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class SettlementFailureError(AppError):
    """The atomic ledger + balance commit did not complete; nothing was applied."""

    def __init__(self, message: str = "Settlement could not be completed"):
        super().__init__(message, code="SETTLEMENT_FAILURE", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": errors},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from wagerbook.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
