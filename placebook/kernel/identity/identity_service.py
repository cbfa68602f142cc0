"""
Identity service for user management operations.
"""

import re
import uuid
from typing import Any, Mapping, Optional, Tuple

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from placebook.errors import AuthError, ConflictError, NotFoundError, ValidationError
from placebook.kernel.identity.jwt import JWTManager
from placebook.kernel.identity.password import PasswordHasher
from placebook.kernel.store import CredentialStore, DuplicateKeyError, Query, UserRecord, by_id
from placebook.kernel.store.records import ProfilePatch, UserStats, utcnow
from placebook.logging_config import get_logger

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
FALLBACK_USERNAME = "user"
# Matches the users.username column width
MAX_USERNAME_LENGTH = 64

# Never writable through profile update, in either spelling
PROTECTED_FIELDS = frozenset((
    "password", "password_hash", "passwordHash",
    "email",
    "is_verified", "isVerified",
))

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def derive_base_username(email: str) -> str:
    """Local part of ``email`` with everything but ASCII letters and digits removed."""
    local_part = email.split("@", 1)[0]
    return _NON_ALNUM.sub("", local_part) or FALLBACK_USERNAME


class IdentityService:
    """
    Service for user identity operations.

    Handles registration, authentication, profile changes and the admin
    username/password paths. Storage, hashing and tokens are injected.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: JWTManager,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens

    async def register(self, email: str, password: str) -> Tuple[UserRecord, str]:
        """
        Register a new user and issue a session token.

        Args:
            email: User's email address
            password: Plain text password

        Returns:
            Tuple of (created record, session token)

        Raises:
            ValidationError: Malformed email or password too short
            ConflictError: Email already registered, or a concurrent
                registration claimed the same email/username first
        """
        email = normalize_email(email)
        self._check_email(email)
        self._check_password(password)

        if await self.store.exists(Query().eq("email", email)):
            logger.warning("Registration failed - Email already exists", extra={"email": email})
            raise ConflictError("Email already registered")

        username = await self.generate_unique_username(email)
        logger.info("Generated username for new user", extra={"email": email, "username": username})

        now = utcnow()
        record = UserRecord(
            username=username,
            email=email,
            password_hash=await self.hasher.hash_async(password),
            full_name=username,
            stats=UserStats(joined_date=now, last_active=now),
        )

        try:
            user = await self.store.insert(record)
        except DuplicateKeyError as e:
            logger.warning(
                "Registration lost a uniqueness race",
                extra={"email": email, "username": username, "field": e.field},
            )
            if e.field == "email":
                raise ConflictError("Email already registered")
            raise ConflictError("Username already exists")

        logger.info("New user registered", extra={"user_id": str(user.id), "username": username})
        return user, self.tokens.issue_token(user.id)

    async def generate_unique_username(self, email: str) -> str:
        """
        First free username among ``base``, ``base1``, ``base2``, ...

        The base is shortened as needed so base plus counter never exceeds
        ``MAX_USERNAME_LENGTH``. The check is advisory; the unique index on
        insert has the final say.
        """
        base = derive_base_username(email)[:MAX_USERNAME_LENGTH]
        candidate = base
        counter = 1
        while await self.store.exists(Query().eq("username", candidate)):
            suffix = str(counter)
            candidate = base[:MAX_USERNAME_LENGTH - len(suffix)] + suffix
            counter += 1
        return candidate

    async def authenticate(self, email: str, password: str) -> Tuple[UserRecord, str]:
        """
        Check credentials and issue a session token.

        Unknown email and wrong password fail identically.

        Raises:
            AuthError: Invalid credentials
        """
        email = normalize_email(email)
        user = await self.store.find_one(Query().eq("email", email))

        if user is None:
            # Burn the same bcrypt time as a real check
            await self.hasher.verify_async(password, self.hasher.dummy_hash)
            logger.warning("Login failed - User not found", extra={"email": email})
            raise AuthError("Invalid credentials")

        if not await self.hasher.verify_async(password, user.password_hash):
            logger.warning("Login failed - Invalid password", extra={"user_id": str(user.id)})
            raise AuthError("Invalid credentials")

        changes: dict[str, Any] = {"stats": user.stats.model_copy(update={"last_active": utcnow()})}
        if self.hasher.needs_rehash(user.password_hash):
            changes["password_hash"] = await self.hasher.hash_async(password)
            logger.info("Rehashing password with current work factor", extra={"user_id": str(user.id)})
        updated = await self.store.update_by_filter(by_id(user.id), changes)
        if updated:
            user = updated[0]

        logger.info("User logged in", extra={"user_id": str(user.id)})
        return user, self.tokens.issue_token(user.id)

    async def get_user(self, user_id: uuid.UUID) -> UserRecord:
        """
        Get a user by ID.

        Raises:
            NotFoundError: No such user
        """
        user = await self.store.find_one(by_id(user_id))
        if user is None:
            logger.warning("User not found", extra={"user_id": str(user_id)})
            raise NotFoundError("User not found")
        return user

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Get a user by email, or None."""
        return await self.store.find_one(Query().eq("email", normalize_email(email)))

    async def list_users(self) -> list[UserRecord]:
        """All users, newest first."""
        return await self.store.find(Query().order_by("created_at", descending=True))

    async def update_profile(
        self,
        user_id: uuid.UUID,
        patch: Mapping[str, Any],
    ) -> UserRecord:
        """
        Apply a partial profile update.

        Credentials and the verification flag are dropped from ``patch``
        whatever the caller sent. Only profile fields are applied; other
        keys (username, ids, timestamps, version) are ignored.

        Args:
            user_id: The user's ID
            patch: Field -> new value, snake_case or camelCase keys

        Returns:
            The updated record

        Raises:
            ValidationError: A profile value fails validation
            NotFoundError: The user no longer exists
        """
        stripped = sorted(key for key in patch if key in PROTECTED_FIELDS)
        if stripped:
            logger.warning(
                "Ignoring protected fields in profile update",
                extra={"user_id": str(user_id), "fields": stripped},
            )

        try:
            changes = ProfilePatch.model_validate(
                {key: value for key, value in patch.items() if key not in PROTECTED_FIELDS}
            ).changes()
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid profile update",
                details={"errors": [
                    {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]},
            )

        if not changes:
            return await self.get_user(user_id)

        updated = await self.store.update_by_filter(by_id(user_id), changes)
        if not updated:
            raise NotFoundError("User not found")

        logger.info(
            "Profile updated",
            extra={"user_id": str(user_id), "fields": sorted(changes)},
        )
        return updated[0]

    async def change_password(
        self,
        user_id: uuid.UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Change a user's password after checking the current one.

        Raises:
            NotFoundError: No such user
            AuthError: ``current_password`` does not match
            ValidationError: ``new_password`` too short
        """
        user = await self.get_user(user_id)

        if not await self.hasher.verify_async(current_password, user.password_hash):
            logger.warning("Password change failed - wrong current password", extra={"user_id": str(user_id)})
            raise AuthError("Current password is incorrect")

        self._check_password(new_password)
        await self._set_password(user.id, new_password)
        logger.info("Password changed", extra={"user_id": str(user_id)})

    async def change_username(self, user_id: uuid.UUID, new_username: str) -> UserRecord:
        """
        Admin path: the only way a username changes after registration.

        Raises:
            ValidationError: Empty or non-alphanumeric username
            ConflictError: Username taken
            NotFoundError: No such user
        """
        new_username = new_username.strip()
        if not new_username or _NON_ALNUM.search(new_username):
            raise ValidationError("Username must be non-empty and alphanumeric")
        if len(new_username) > MAX_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters")

        try:
            updated = await self.store.update_by_filter(by_id(user_id), {"username": new_username})
        except DuplicateKeyError:
            raise ConflictError("Username already exists")
        if not updated:
            raise NotFoundError("User not found")

        logger.info("Username changed by admin", extra={"user_id": str(user_id), "username": new_username})
        return updated[0]

    async def reset_password(self, email: str, new_password: str) -> UserRecord:
        """
        Admin path: set a password without knowing the current one.

        Raises:
            ValidationError: Password too short
            NotFoundError: No user with that email
        """
        self._check_password(new_password)
        user = await self.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        await self._set_password(user.id, new_password)
        logger.info("Password reset by admin", extra={"user_id": str(user.id)})
        return user

    def verify_token(self, token: str) -> str:
        """User id carried by a valid session token."""
        return self.tokens.verify_token(token)

    async def _set_password(self, user_id: uuid.UUID, new_password: str) -> None:
        password_hash = await self.hasher.hash_async(new_password)
        updated = await self.store.update_by_filter(by_id(user_id), {"password_hash": password_hash})
        if not updated:
            raise NotFoundError("User not found")

    @staticmethod
    def _check_email(email: str) -> None:
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError:
            raise ValidationError("Please enter a valid email", details={"field": "email"})

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                details={"field": "password"},
            )

