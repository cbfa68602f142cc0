"""
Authentication and profile endpoints.
"""

from fastapi import APIRouter, status

from placebook.api.deps import CurrentUserId, Identity
from placebook.logging_config import get_logger
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
from placebook.schemas.common import MessageResponse

logger = get_logger(__name__)

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, identity: Identity):
    """
    Register a new user account.

    The username is derived from the email; the response carries a
    session token valid for seven days.
    """
    user, token = await identity.register(email=data.email, password=data.password)
    return AuthResponse(
        message="Registration successful",
        token=token,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(data: UserLogin, identity: Identity):
    """Authenticate user and return a session token."""
    user, token = await identity.authenticate(email=data.email, password=data.password)
    return AuthResponse(
        message="Login successful",
        token=token,
        user=UserResponse.model_validate(user),
    )


@router.get("/users", response_model=UserListResponse)
async def list_users(identity: Identity):
    """Public list of all users, newest first."""
    users = [PublicUser.model_validate(u) for u in await identity.list_users()]
    return UserListResponse(users=users, count=len(users))


@router.get("/profile", response_model=UserEnvelope)
async def get_profile(user_id: CurrentUserId, identity: Identity):
    """Get the current user's profile."""
    user = await identity.get_user(user_id)
    return UserEnvelope(user=UserProfile.model_validate(user))


@router.put("/profile", response_model=UserUpdateResponse)
async def update_profile(data: ProfileUpdate, user_id: CurrentUserId, identity: Identity):
    """
    Update the current user's profile.

    Email, password and verification status cannot be changed here.
    """
    user = await identity.update_profile(user_id, data.changes())
    return UserUpdateResponse(
        message="Profile updated successfully",
        user=UserResponse.model_validate(user),
    )


@router.post("/change-password", response_model=MessageResponse)
async def change_password(data: ChangePasswordRequest, user_id: CurrentUserId, identity: Identity):
    """Change the current user's password; requires the current one."""
    await identity.change_password(
        user_id=user_id,
        current_password=data.current_password,
        new_password=data.new_password,
    )
    return MessageResponse(message="Password updated successfully")


@router.get("/verify", response_model=TokenVerifyResponse)
async def verify_token(user_id: CurrentUserId):
    """Check that the bearer token is valid."""
    return TokenVerifyResponse(valid=True, user_id=user_id)


@router.get("/me", response_model=UserEnvelope)
async def get_current_user(user_id: CurrentUserId, identity: Identity):
    """Get the current user's data."""
    user = await identity.get_user(user_id)
    return UserEnvelope(user=UserProfile.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(user_id: CurrentUserId):
    """
    Log out.

    Tokens are stateless, so there is nothing to revoke server-side; the
    client discards its token.
    """
    logger.info("User logged out")
    return MessageResponse(message="Logged out successfully")
