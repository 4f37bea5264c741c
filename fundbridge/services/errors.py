"""Shared error classes for the scoring, funding and billing services."""

from __future__ import annotations


class FundBridgeError(RuntimeError):
    """Base exception carrying a machine-readable error code."""

    default_code = "500_INTERNAL"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code


class ValidationError(FundBridgeError):
    """Raised when a required field is missing or malformed."""

    default_code = "422_INVALID_INPUT"


class AuthorizationError(FundBridgeError):
    """Raised when the caller's role or identity does not permit the operation."""

    default_code = "403_FORBIDDEN"


class NotFoundError(FundBridgeError):
    """Raised when a referenced entity does not exist."""

    default_code = "404_NOT_FOUND"


class InvalidStateTransition(FundBridgeError):
    """Raised when a fund request is not in the status an action requires."""

    default_code = "409_INVALID_STATE_TRANSITION"

    def __init__(self, message: str, *, current: str, expected: str | None = None) -> None:
        super().__init__(message)
        self.current = current
        self.expected = expected


class PaymentValidationFailed(FundBridgeError):
    """Raised when a payment signature does not match."""

    default_code = "400_PAYMENT_VALIDATION_FAILED"


class PersistenceError(FundBridgeError):
    """Raised when a repository fails to save or retrieve records."""


class PaymentGatewayError(FundBridgeError):
    """Raised when the payment gateway cannot create an order."""

    default_code = "502_PAYMENT_GATEWAY"
