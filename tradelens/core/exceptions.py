"""Custom exceptions shared by the signal engine."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception with a structured error payload."""

    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a problem+json style payload for the presentation layer."""
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class ValidationError(AppException):
    """Backtest or request configuration violates a precondition."""

    error_code = "VALIDATION_ERROR"
    message = "Validation failed"


class DataUnavailableError(AppException):
    """Price history could not be obtained for one ticker or for all of them."""

    error_code = "DATA_UNAVAILABLE"
    message = "Price history unavailable"

    def __init__(
        self,
        message: str | None = None,
        ticker: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.ticker = ticker
        if ticker:
            details = {"ticker": ticker, **(details or {})}
        super().__init__(message=message, details=details)


class InsufficientHistoryError(AppException):
    """A strategy received fewer bars than its minimum window.

    Raised inside strategy functions only; the strategy decorator turns it
    into a neutral signal so it never reaches callers.
    """

    error_code = "INSUFFICIENT_HISTORY"
    message = "Insufficient data"
