"""
Error taxonomy for the identity API.

Services raise these; the exception handlers in ``placebook.main`` turn
them into HTTP responses using ``status_code`` and ``to_dict()``.
"""

from typing import Any, Optional


class PlacebookError(Exception):
    """
    Base exception for all Placebook errors.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PlacebookError):
    """Input validation failed."""

    status_code = 400


class ConflictError(PlacebookError):
    """A uniqueness constraint would be violated."""

    status_code = 400


class AuthError(PlacebookError):
    """Missing or invalid token, or bad credentials."""

    status_code = 401


class NotFoundError(PlacebookError):
    """Referenced identity does not exist."""

    status_code = 404


class ServerError(PlacebookError):
    """Unexpected failure, usually in storage."""

    status_code = 500
