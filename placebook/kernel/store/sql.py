"""
SQLAlchemy implementation of the credential store.

Works with any async dialect the engine supports; PostgreSQL (asyncpg) in
production and SQLite (aiosqlite) in tests.
"""

import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from placebook.errors import NotFoundError, ValidationError
from placebook.kernel.models.user import UserRow
from placebook.kernel.store.base import CredentialStore, DuplicateKeyError
from placebook.kernel.store.query import Eq, Match, Query, Range
from placebook.kernel.store.records import NESTED_SECTIONS, UserRecord
from placebook.logging_config import get_logger

logger = get_logger(__name__)

_COLUMNS = {
    "id": UserRow.id,
    "username": UserRow.username,
    "email": UserRow.email,
    "full_name": UserRow.full_name,
    "is_verified": UserRow.is_verified,
    "created_at": UserRow.created_at,
    "updated_at": UserRow.updated_at,
    "location.country": UserRow.location["country"].as_string(),
    "location.city": UserRow.location["city"].as_string(),
}

_WRITABLE = frozenset((
    "username", "email", "password_hash", "full_name", "is_verified",
    "profile_photo", "bio", *NESTED_SECTIONS,
))

_UNIQUE_FIELDS = ("username", "email")

# PostgreSQL: 'Key (email)=(a@b.com) already exists.'
_PG_DUPLICATE = re.compile(r"Key \((\w+)\)=")
# SQLite: 'UNIQUE constraint failed: users.email'
_SQLITE_DUPLICATE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")


def _duplicate_field(exc: IntegrityError) -> Optional[str]:
    """Work out which unique field an IntegrityError is about."""
    message = str(exc.orig)
    for pattern in (_PG_DUPLICATE, _SQLITE_DUPLICATE):
        found = pattern.search(message)
        if found and found.group(1) in _UNIQUE_FIELDS:
            return found.group(1)
    for name in _UNIQUE_FIELDS:
        if f"users_{name}" in message or f"ix_users_{name}" in message:
            return name
    return None


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _column_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def _to_record(row: UserRow) -> UserRecord:
    return UserRecord.model_validate(
        {name: getattr(row, name) for name in UserRecord.model_fields}
    )


class SqlCredentialStore(CredentialStore):
    """
    Credential store over an ``AsyncSession``.

    The session's transaction is owned by the caller (the request's
    ``get_db`` dependency); this class only flushes.
    """

    queryable_fields = frozenset(_COLUMNS)

    def __init__(self, session: AsyncSession):
        self.session = session

    def compile(self, query: Query) -> Select:
        """Validate ``query`` and turn it into a SELECT over the users table."""
        query.validate(self.queryable_fields)

        stmt = select(UserRow)
        for flt in query.filters:
            column = _COLUMNS[flt.field]
            if isinstance(flt, Eq):
                stmt = stmt.where(column == flt.value)
            elif isinstance(flt, Match):
                pattern = _escape_like(flt.text) + "%"
                if not flt.prefix:
                    pattern = "%" + pattern
                stmt = stmt.where(column.ilike(pattern, escape="\\"))
            elif isinstance(flt, Range):
                bounds = flt.bounds()
                if "gte" in bounds:
                    stmt = stmt.where(column >= bounds["gte"])
                if "gt" in bounds:
                    stmt = stmt.where(column > bounds["gt"])
                if "lte" in bounds:
                    stmt = stmt.where(column <= bounds["lte"])
                if "lt" in bounds:
                    stmt = stmt.where(column < bounds["lt"])

        for key in query.sort:
            column = _COLUMNS[key.field]
            stmt = stmt.order_by(column.desc() if key.descending else column.asc())
        if query.limit_to is not None:
            stmt = stmt.limit(query.limit_to)
        if query.skip:
            stmt = stmt.offset(query.skip)
        return stmt

    async def find(self, query: Query) -> list[UserRecord]:
        result = await self.session.execute(self.compile(query))
        return [_to_record(row) for row in result.scalars().all()]

    async def insert(self, record: UserRecord) -> UserRecord:
        values = {
            name: _column_value(getattr(record, name))
            for name in _WRITABLE
        }
        row = UserRow(**values)
        if record.id is not None:
            row.id = record.id

        self.session.add(row)
        await self._flush()
        await self.session.refresh(row)
        return _to_record(row)

    async def update_by_filter(
        self,
        query: Query,
        changes: Mapping[str, Any],
    ) -> list[UserRecord]:
        unknown = set(changes) - _WRITABLE
        if unknown:
            raise ValidationError(
                f"Fields cannot be written: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

        result = await self.session.execute(self.compile(query))
        rows = list(result.scalars().all())
        if not rows:
            return []

        for row in rows:
            for name, value in changes.items():
                setattr(row, name, _column_value(value))
            # Incremented in SQL, not read-modify-write
            row.version = UserRow.version + 1
        await self._flush()

        for row in rows:
            await self.session.refresh(row)
        return [_to_record(row) for row in rows]

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as exc:
            field = _duplicate_field(exc)
            logger.info("Unique index rejected write", extra={"field": field})
            await self.session.rollback()
            raise DuplicateKeyError(field) from exc
        except StaleDataError as exc:
            # Row deleted between our SELECT and UPDATE
            logger.info("Record vanished during write")
            await self.session.rollback()
            raise NotFoundError("User not found") from exc
