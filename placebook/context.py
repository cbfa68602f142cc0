"""
Process-wide application context.

Built once per process by ``build_context`` and handed to whatever needs
it (the FastAPI app keeps it on ``app.state.context``; the admin CLI holds
it locally). Nothing in request code reaches for module-level settings
or engines.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from placebook.config import Settings
from placebook.database import create_engine, create_session_maker
from placebook.kernel.identity.identity_service import IdentityService
from placebook.kernel.identity.jwt import JWTManager
from placebook.kernel.identity.password import PasswordHasher
from placebook.kernel.store import SqlCredentialStore


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    hasher: PasswordHasher
    tokens: JWTManager

    def identity_service(self, session: AsyncSession) -> IdentityService:
        """Identity service bound to one database session."""
        return IdentityService(
            store=SqlCredentialStore(session),
            hasher=self.hasher,
            tokens=self.tokens,
        )


def build_context(settings: Settings) -> AppContext:
    engine = create_engine(settings)
    return AppContext(
        settings=settings,
        engine=engine,
        session_maker=create_session_maker(engine),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=JWTManager(
            secret_key=settings.secret_key,
            algorithm=settings.algorithm,
            token_expire_days=settings.token_expire_days,
        ),
    )
