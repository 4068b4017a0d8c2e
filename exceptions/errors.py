"""
Custom exception classes for the application.

Precondition failures (ownership checks, unresolvable ids) are raised before
any aggregation runs. Aggregation code itself never raises.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ASSET_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


class PreconditionFailedError(AppError):
    """
    Request scope could not be resolved for the caller (404).

    Surfaced as 404 so that callers cannot probe for businesses they
    do not own.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=404,
            details=details
        )


# ===================
# OWNERSHIP ERRORS
# ===================

class BusinessNotFoundError(PreconditionFailedError):
    """Business does not exist or is not owned by the requester."""

    def __init__(self, business_id: str, owner_id: str):
        super().__init__(
            code="BUSINESS_NOT_FOUND",
            message="Business not found or unauthorized",
            details={"business_id": business_id, "owner_id": owner_id}
        )


class UnauthorizedError(PreconditionFailedError):
    """Ownership check failed for a customer insight request."""

    def __init__(self, business_id: str, owner_id: str):
        super().__init__(
            code="UNAUTHORIZED",
            message="Unauthorized",
            details={"business_id": business_id, "owner_id": owner_id}
        )


# ===================
# LOOKUP ERRORS
# ===================

class AssetNotFoundError(NotFoundError):
    """Asset not found."""

    def __init__(self, asset_id: str):
        super().__init__(
            resource="Asset",
            identifier=asset_id,
            code="ASSET_NOT_FOUND"
        )


class UserNotFoundError(NotFoundError):
    """User not found."""

    def __init__(self, user_id: str):
        super().__init__(
            resource="User",
            identifier=user_id,
            code="USER_NOT_FOUND"
        )


# ===================
# QUERY ERRORS
# ===================

class InvalidSortFieldError(ValidationError):
    """Requested sort field is not part of the performance row."""

    def __init__(self, sort_by: str, valid: list[str]):
        super().__init__(
            code="INVALID_SORT_FIELD",
            message=f"Cannot sort by '{sort_by}'",
            details={"provided": sort_by, "valid": valid}
        )
