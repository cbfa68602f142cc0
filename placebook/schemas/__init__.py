"""
Pydantic schemas for API request/response validation.
"""

from placebook.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ProfileUpdate,
    PublicUser,
    TokenVerifyResponse,
    UserCreate,
    UserEnvelope,
    UserListResponse,
    UserLogin,
    UserProfile,
    UserResponse,
    UserUpdateResponse,
)
from placebook.schemas.common import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    ValidationErrorResponse,
)

__all__ = [
    "AuthResponse",
    "ChangePasswordRequest",
    "ProfileUpdate",
    "PublicUser",
    "TokenVerifyResponse",
    "UserCreate",
    "UserEnvelope",
    "UserListResponse",
    "UserLogin",
    "UserProfile",
    "UserResponse",
    "UserUpdateResponse",
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "ValidationErrorResponse",
]
