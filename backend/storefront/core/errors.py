"""
Application error types.

Services raise AppError; ErrorHandlerMiddleware turns it into a JSON response.
"""
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Stable error codes returned to API clients."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    SHIPPING_NOT_AVAILABLE = "SHIPPING_NOT_AVAILABLE"
    SHIPPING_DATA_MISSING = "SHIPPING_DATA_MISSING"
    SHIPPING_RATE_ERROR = "SHIPPING_RATE_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class AppError(Exception):
    """Domain error carrying an error code and the HTTP status to answer with."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {
            "code": self.code.value if isinstance(self.code, ErrorCode) else str(self.code),
            "message": self.message,
        }
        if self.details is not None:
            error["details"] = self.details
        return error

    def __repr__(self) -> str:
        return f"<AppError {self.code} {self.status_code}: {self.message}>"


def not_found(message: str) -> AppError:
    return AppError(ErrorCode.NOT_FOUND, message, 404)


def forbidden(message: str) -> AppError:
    return AppError(ErrorCode.FORBIDDEN, message, 403)


def validation_error(message: str, details: Optional[Any] = None) -> AppError:
    return AppError(ErrorCode.VALIDATION_ERROR, message, 400, details)
