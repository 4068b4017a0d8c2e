"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,
    PreconditionFailedError,

    # Ownership
    BusinessNotFoundError,
    UnauthorizedError,

    # Lookups
    AssetNotFoundError,
    UserNotFoundError,

    # Queries
    InvalidSortFieldError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",
    "PreconditionFailedError",

    # Ownership
    "BusinessNotFoundError",
    "UnauthorizedError",

    # Lookups
    "AssetNotFoundError",
    "UserNotFoundError",

    # Queries
    "InvalidSortFieldError",
]
