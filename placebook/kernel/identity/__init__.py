"""
Identity Core - Authentication and user management.
"""

from placebook.kernel.identity.password import PasswordHasher, verify_password, hash_password
from placebook.kernel.identity.jwt import JWTManager, TokenPayload
from placebook.kernel.identity.identity_service import (
    IdentityService,
    derive_base_username,
    normalize_email,
)

__all__ = [
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "JWTManager",
    "TokenPayload",
    "IdentityService",
    "derive_base_username",
    "normalize_email",
]
