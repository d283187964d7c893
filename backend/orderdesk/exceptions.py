"""
OrderDesk Backend — Custom Exception Hierarchy
================================================

What:  Defines application-specific exceptions for different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and the auth gate; caught by global handlers.

Exception Hierarchy:
    OrderDeskError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── ConflictError            → 400 Bad Request (duplicate key)
    ├── InvalidCredentialsError  → 401 Unauthorized (login failed)
    ├── MissingTokenError        → 403 Forbidden (no bearer token)
    ├── InvalidTokenError        → 401 Unauthorized (bad or expired token)
    ├── NotFoundError            → 404 Not Found
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class OrderDeskError(Exception):
    """
    Base exception for all OrderDesk application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client
                  unless a handler explicitly opts in)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(OrderDeskError):
    """
    Raised when client input fails validation.

    When:    Missing query parameter, malformed order identifier, empty id list.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Invalid order id: 'not-an-id'",
            "details": {"field": "ids", "value": "not-an-id"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ConflictError(OrderDeskError):
    """
    Raised when a write would duplicate a unique key.

    When:    Registering an email that already exists; patching an order's
             iqama to a value another order owns.
    HTTP:    400 Bad Request (error code "conflict")
    """

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentialsError(OrderDeskError):
    """
    Raised when login fails.

    The message never says whether the email or the password was wrong.
    HTTP:    401 Unauthorized
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid email or password", context=context)


class MissingTokenError(OrderDeskError):
    """
    Raised by the auth gate when no bearer token accompanies the request.
    HTTP:    403 Forbidden
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="No token provided", context=context)


class InvalidTokenError(OrderDeskError):
    """
    Raised by the auth gate when the token signature is wrong or it has expired.
    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Invalid token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(OrderDeskError):
    """
    Raised when a requested resource does not exist.

    When:    Order id with no row, search with no match, unknown user.
    HTTP:    404 Not Found

    SQLAlchemy returns None (or a zero rowcount) for missing records; the
    service layer converts that into this exception.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(OrderDeskError):
    """
    Raised when database operations fail unexpectedly.

    When:    Connection lost mid-query, deadlock, driver error.
    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Driver error
        text is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
