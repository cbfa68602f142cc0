"""
JWT session tokens.

Tokens are stateless: a token is valid while its signature checks out and
its ``exp`` is in the future. There is no refresh and no server-side
revocation; logging in again is the only way to get a new token.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from placebook.errors import AuthError
from placebook.logging_config import get_logger

logger = get_logger(__name__)

TOKEN_EXPIRE_DAYS = 7


class TokenPayload(BaseModel):
    """Decoded session token claims."""

    sub: str  # User ID
    exp: datetime
    iat: datetime


class JWTManager:
    """
    Session token creation and verification.

    Usage:
        tokens = JWTManager(secret_key=settings.secret_key)
        token = tokens.issue_token(user.id)
        user_id = tokens.verify_token(token)
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        token_expire_days: int = TOKEN_EXPIRE_DAYS,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_expire_days = token_expire_days

    def issue_token(
        self,
        user_id: Union[uuid.UUID, str],
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a signed session token for ``user_id``.

        Args:
            user_id: Identity the token speaks for
            expires_delta: Override of the default lifetime

        Returns:
            Encoded JWT
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(days=self.token_expire_days))
        payload = {
            "sub": str(user_id),
            "exp": expire,
            "iat": now,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> TokenPayload:
        """
        Verify ``token`` and return its claims.

        Raises:
            AuthError: Bad signature, malformed token, missing subject or
                expired token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except ExpiredSignatureError:
            raise AuthError("Token has expired", code="TOKEN_EXPIRED")
        except JWTError as e:
            logger.info("Token verification failed", extra={"reason": str(e)})
            raise AuthError("Token is not valid", code="INVALID_TOKEN")

        sub = payload.get("sub")
        if not sub or "exp" not in payload:
            raise AuthError("Token is not valid", code="INVALID_TOKEN")

        return TokenPayload(
            sub=sub,
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload.get("iat", payload["exp"]), tz=timezone.utc),
        )

    def verify_token(self, token: str) -> str:
        """Verify ``token`` and return the user id it was issued for."""
        return self.decode_token(token).sub
