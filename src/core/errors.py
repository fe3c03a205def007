"""Application error taxonomy.

Services raise these; the error handler middleware turns them into the
standard JSON error body. Conflicts are user-actionable and never retried,
except TransactionConflictError which the services retry on a fresh
transaction.
"""

from typing import Any

from fastapi import status


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Malformed or unacceptable input."""

    def __init__(
        self,
        message: str = "Validation error",
        details: list[dict[str, Any]] | None = None,
        error_type: str = "validation_error",
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type=error_type,
            details=details,
        )


class InvalidSlotError(ValidationError):
    """Requested pickup slot is not in the bookable list."""

    def __init__(self, message: str = "Invalid pickup slot") -> None:
        super().__init__(message=message, error_type="invalid_slot")


class ProductUnavailableError(ValidationError):
    """Product does not exist or is inactive."""

    def __init__(self, message: str = "Product is unavailable") -> None:
        super().__init__(message=message, error_type="product_unavailable")


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            details=details,
        )


class ConflictError(APIError):
    """Request conflicts with the current state of the resource."""

    def __init__(self, message: str = "Conflict", error_type: str = "conflict") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_type=error_type,
        )


class SlotFullError(ConflictError):
    """Pickup slot has no remaining capacity."""

    def __init__(self, message: str = "Pickup slot is full") -> None:
        super().__init__(message=message, error_type="slot_full")


class InsufficientStockError(ConflictError):
    """Not enough stock to reserve the requested amount."""

    def __init__(self, message: str = "Insufficient stock") -> None:
        super().__init__(message=message, error_type="insufficient_stock")


class InvalidTransitionError(ConflictError):
    """Order status move is not allowed by the transition table."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Invalid status transition: {current} -> {requested}",
            error_type="invalid_transition",
        )


class TerminalStateError(ConflictError):
    """Order is cancelled or refunded and cannot be changed this way."""

    def __init__(self, message: str = "Order is in a terminal state") -> None:
        super().__init__(message=message, error_type="terminal_state")


class NothingToRefundError(ConflictError):
    """No refundable amount remains on the order."""

    def __init__(self, message: str = "No refundable amount remaining") -> None:
        super().__init__(message=message, error_type="nothing_to_refund")


class NoPaymentIntentError(ConflictError):
    """Order was never attached to a payment intent."""

    def __init__(self, message: str = "Order has no payment intent") -> None:
        super().__init__(message=message, error_type="no_payment_intent")


class AuthenticationError(APIError):
    """Authentication failure error."""

    def __init__(self, message: str = "Authentication required", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="authentication_error",
            details=details,
        )


class AuthorizationError(APIError):
    """Authorization failure error."""

    def __init__(self, message: str = "Access denied", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_type="authorization_error",
            details=details,
        )


class DependencyError(APIError):
    """Payment provider or storage failure."""

    def __init__(self, message: str = "Upstream dependency failed", service: str | None = None) -> None:
        self.service = service
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_type="dependency_error",
        )


class TransactionConflictError(ConflictError):
    """A store transaction lost a race with a concurrent one and was rolled back.

    Services retry these a few times; one that escapes is reported as a 409.
    """

    def __init__(self, message: str = "Request collided with a concurrent update, please retry") -> None:
        super().__init__(message=message, error_type="transaction_conflict")
