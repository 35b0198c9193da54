# 📄 File: app/shared/core/exceptions.py
# 🧭 Purpose (Layman Explanation):
# This file defines all the special error types the subscription service uses to explain
# what went wrong (bad input, not your subscription, card declined...) in a clear, organized way.
# 🧪 Purpose (Technical Summary):
# Custom exception hierarchy providing specific error types with HTTP status codes,
# error details, and a uniform serialization used by every API error response.
# 🔗 Dependencies:
# FastAPI status constants, typing
# 🔄 Connected Modules / Calls From:
# Domain services, repositories, external clients, middleware, API endpoints

from typing import Any, Dict, Optional

from fastapi import status


class MarketplaceException(Exception):
    """
    Base exception class for the marketplace subscription service.
    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__.upper()
        super().__init__(self.message)

    def to_dict(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Convert exception to the API error envelope."""
        return error_body(self.message, self.error_code, self.details, request_id)


def error_body(
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Build the error envelope shared by every failing response."""
    return {
        "success": False,
        "message": message,
        "error": {
            "code": code,
            "details": details or {},
        },
        "request_id": request_id,
    }


# =============================================================================
# AUTHENTICATION & AUTHORIZATION EXCEPTIONS
# =============================================================================

class AuthenticationError(MarketplaceException):
    """
    Exception raised for authentication failures.
    Used when the bearer token is missing, malformed or expired.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
            error_code="AUTHENTICATION_ERROR"
        )


class AuthorizationError(MarketplaceException):
    """
    Exception raised for authorization failures.
    Used when a user acts on a subscription or payment they do not own.
    """

    def __init__(
        self,
        message: str = "Access denied",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
            error_code="AUTHORIZATION_ERROR"
        )


# =============================================================================
# VALIDATION & BUSINESS RULE EXCEPTIONS
# =============================================================================

class ValidationError(MarketplaceException):
    """
    Exception raised for invalid input (unknown tier, bad cycle, malformed dates).
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
            error_code="VALIDATION_ERROR"
        )


class NotFoundError(MarketplaceException):
    """
    Exception raised when a subscription, payment or code does not exist.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error_code="NOT_FOUND"
        )


class BusinessRuleViolationError(MarketplaceException):
    """
    Exception raised when a request conflicts with the subscription rules:
    duplicate subscription, second trial, wrong-direction tier change,
    exhausted retries, elapsed grace period.
    """

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if rule:
            details["rule"] = rule

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
            error_code="BUSINESS_RULE_VIOLATION"
        )


class PaymentRequiredError(MarketplaceException):
    """
    Exception raised when the payment processor declines a charge
    that a state change depends on.
    """

    def __init__(
        self,
        message: str = "Payment was declined",
        decline_code: Optional[str] = None,
        payment_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if decline_code:
            details["decline_code"] = decline_code
        if payment_id:
            details["payment_id"] = payment_id

        super().__init__(
            message=message,
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details=details,
            error_code="PAYMENT_REQUIRED"
        )


class ConcurrentModificationError(MarketplaceException):
    """
    Exception raised when a subscription changed between read and write.
    """

    def __init__(
        self,
        message: str = "Subscription was modified by another request, please retry",
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            error_code="CONCURRENT_MODIFICATION"
        )


class RateLimitError(MarketplaceException):
    """
    Exception raised when rate limits are exceeded.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        limit: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if limit:
            details["limit"] = limit

        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
            error_code="RATE_LIMIT_EXCEEDED"
        )


# =============================================================================
# INFRASTRUCTURE EXCEPTIONS
# =============================================================================

class ExternalServiceError(MarketplaceException):
    """
    Exception raised when the payment processor, email service
    or Supabase cannot be reached or answers unexpectedly.
    """

    def __init__(
        self,
        message: str = "External service unavailable",
        service_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if service_name:
            details["service"] = service_name

        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details,
            error_code="EXTERNAL_SERVICE_ERROR"
        )


class DatabaseError(MarketplaceException):
    """
    Exception raised for database operation failures.
    """

    def __init__(
        self,
        message: str = "Database operation failed",
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code="DATABASE_ERROR"
        )


class TransactionError(MarketplaceException):
    """
    Exception raised when a transaction cannot be committed.
    """

    def __init__(
        self,
        message: str = "Transaction failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code="TRANSACTION_ERROR"
        )
