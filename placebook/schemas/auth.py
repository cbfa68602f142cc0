"""
Authentication and profile schemas.

Wire names are camelCase; requests also accept snake_case.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from placebook.kernel.store.records import (
    Location,
    Preferences,
    ProfilePatch,
    SocialLinks,
    UserSettings,
    UserStats,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserCreate(CamelModel):
    """User registration request."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class UserLogin(CamelModel):
    """User login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class PublicUser(CamelModel):
    """What anyone may see about a user."""

    id: uuid.UUID
    username: str
    full_name: str
    profile_photo: str = ""
    bio: str = ""
    location: Location
    preferences: Preferences
    social: SocialLinks
    stats: UserStats
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserProfile(PublicUser):
    """The owner's view of their account, without versioning metadata."""

    email: str
    is_verified: bool = False
    settings: UserSettings


class UserResponse(UserProfile):
    """Owner's view including the record version."""

    version: Optional[int] = None


class AuthResponse(CamelModel):
    """Register/login response."""

    message: str
    token: str
    user: UserResponse


class UserEnvelope(CamelModel):
    user: UserProfile


class UserUpdateResponse(CamelModel):
    message: str
    user: UserResponse


class UserListResponse(CamelModel):
    users: List[PublicUser]
    count: int


class ProfileUpdate(ProfilePatch):
    """Profile update request. Unknown or protected fields are dropped."""


class ChangePasswordRequest(CamelModel):
    """Password change request."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class TokenVerifyResponse(CamelModel):
    valid: bool = True
    user_id: uuid.UUID
