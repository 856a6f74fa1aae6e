# backend/borkin/core/exceptions.py
"""
Domain-specific exceptions for the Borkin platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request or business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class ExternalServiceException(ServiceException):
    """Raised when the payment processor or another upstream call fails."""

    status_code = status.HTTP_502_BAD_GATEWAY


# Specific business exceptions


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class ContractorNotFoundException(NotFoundException):
    def __init__(self, contractor_id: str):
        super().__init__(
            message="Contractor not found",
            code="CONTRACTOR_NOT_FOUND",
            details={"contractor_id": contractor_id},
        )


class ClientNotFoundException(NotFoundException):
    def __init__(self, client_id: str):
        super().__init__(
            message="Client not found",
            code="CLIENT_NOT_FOUND",
            details={"client_id": client_id},
        )


class NoPayoutAccountException(BusinessRuleException):
    """Raised when a contractor cannot receive transfers yet."""

    def __init__(
        self,
        contractor_id: str,
        *,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Contractor has not completed payout onboarding",
            code="NO_PAYOUT_ACCOUNT",
            details={"contractor_id": contractor_id, **(details or {})},
        )


class FeeComputationException(BusinessRuleException):
    """Raised when fee math leaves nothing to transfer to the contractor."""

    def __init__(self, amount_cents: int, transfer_amount_cents: int):
        super().__init__(
            message="Computed transfer amount must be positive",
            code="FEE_COMPUTATION_ERROR",
            details={
                "amount_cents": amount_cents,
                "transfer_amount_cents": transfer_amount_cents,
            },
        )


class NotReadyException(ConflictException):
    """Raised when a booking's payment is not in a state that allows the action."""


class CompletionPendingException(NotReadyException):
    def __init__(self, booking_id: str, *, client_completed: bool, contractor_completed: bool):
        super().__init__(
            message="Both client and contractor must mark the booking as completed",
            code="COMPLETION_PENDING",
            details={
                "booking_id": booking_id,
                "client_completed": client_completed,
                "contractor_completed": contractor_completed,
            },
        )


class AlreadyPaidException(NotReadyException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Payment already released",
            code="ALREADY_PAID",
            details={"booking_id": booking_id},
        )


class NotReadyForCaptureException(NotReadyException):
    def __init__(self, payment_intent_id: Optional[str], current_status: Optional[str]):
        super().__init__(
            message=(
                f"PaymentIntent is not ready to be captured. Current status: {current_status}. "
                "Please ensure payment is authorized before releasing funds."
            ),
            code="NOT_READY_FOR_CAPTURE",
            details={"payment_intent_id": payment_intent_id, "status": current_status},
        )


class AlreadyCapturedException(NotReadyException):
    """A concurrent request captured (or canceled) the intent first."""

    def __init__(self, payment_intent_id: str, current_status: Optional[str] = None):
        super().__init__(
            message="PaymentIntent has already been captured or canceled",
            code="ALREADY_CAPTURED",
            details={"payment_intent_id": payment_intent_id, "status": current_status},
        )


class PaymentIntentConflictException(ConflictException):
    """The booking's intent was replaced by another request; re-read and retry."""

    def __init__(self, booking_id: str, expected: Optional[str], actual: Optional[str]):
        super().__init__(
            message="Booking payment was modified by another request",
            code="PAYMENT_INTENT_CONFLICT",
            details={
                "booking_id": booking_id,
                "expected_payment_intent_id": expected,
                "current_payment_intent_id": actual,
                "retryable": True,
            },
        )


class StaleBookingException(ConflictException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking was updated concurrently",
            code="STALE_BOOKING",
            details={"booking_id": booking_id, "retryable": True},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
