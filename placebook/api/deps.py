"""
FastAPI dependencies: application context, database sessions, the
identity service and the bearer-token request gate.
"""

import uuid
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from placebook.context import AppContext
from placebook.errors import AuthError
from placebook.kernel.identity.identity_service import IdentityService
from placebook.logging_config import get_logger, user_id_var

logger = get_logger(__name__)

# Security scheme; missing/odd headers are reported by the gate itself
security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    """The AppContext the app was built with."""
    return request.app.state.context


Context = Annotated[AppContext, Depends(get_context)]


async def get_db(context: Context) -> AsyncGenerator[AsyncSession, None]:
    """One session per request: commit on success, roll back on error."""
    async with context.session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_identity_service(context: Context, db: DbSession) -> IdentityService:
    return context.identity_service(db)


Identity = Annotated[IdentityService, Depends(get_identity_service)]


async def get_current_user_id(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    context: Context,
) -> uuid.UUID:
    """
    Request gate for protected routes.

    Requires ``Authorization: Bearer <token>``, verifies the token and
    attaches the user id to ``request.state.user_id`` (and the logging
    context). The user record itself is not loaded here.

    Raises:
        AuthError: Header missing/malformed, or token invalid or expired
    """
    if credentials is None or not credentials.credentials:
        logger.warning("No token provided or invalid token format")
        raise AuthError("Authorization denied", code="MISSING_TOKEN")

    subject = context.tokens.verify_token(credentials.credentials)
    try:
        user_id = uuid.UUID(subject)
    except ValueError:
        logger.warning("Token subject is not a user id")
        raise AuthError("Token is not valid", code="INVALID_TOKEN")

    request.state.user_id = user_id
    user_id_var.set(str(user_id))
    logger.debug("Token verified")
    return user_id


CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
