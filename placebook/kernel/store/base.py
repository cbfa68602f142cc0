"""
Credential store capability interface.

A store persists ``UserRecord`` objects and enforces uniqueness of
``username`` and ``email``. Uniqueness is the store's job, not the
caller's: an insert or update that would duplicate either field raises
``DuplicateKeyError`` no matter what the caller checked beforehand.
"""

import abc
from typing import Any, Mapping, Optional

from placebook.kernel.store.query import Query
from placebook.kernel.store.records import UserRecord


class DuplicateKeyError(Exception):
    """A write collided with a unique index."""

    def __init__(self, field: Optional[str] = None):
        self.field = field
        super().__init__(f"Duplicate value for unique field: {field or 'unknown'}")


class CredentialStore(abc.ABC):
    """Storage engine for user identities."""

    #: Fields a Query may filter or sort on
    queryable_fields: frozenset = frozenset()

    @abc.abstractmethod
    async def find(self, query: Query) -> list[UserRecord]:
        """Return every record matching ``query``."""

    async def find_one(self, query: Query) -> Optional[UserRecord]:
        """Return the first record matching ``query``, or None."""
        records = await self.find(query.limit(1))
        return records[0] if records else None

    async def exists(self, query: Query) -> bool:
        return await self.find_one(query) is not None

    @abc.abstractmethod
    async def insert(self, record: UserRecord) -> UserRecord:
        """
        Store a new record and return it with id/timestamps/version filled.

        Raises:
            DuplicateKeyError: username or email already taken
        """

    @abc.abstractmethod
    async def update_by_filter(
        self,
        query: Query,
        changes: Mapping[str, Any],
    ) -> list[UserRecord]:
        """
        Apply ``changes`` (record field -> new value) to every match.

        Returns the updated records; an empty list if nothing matched.

        Raises:
            DuplicateKeyError: the change collides with a unique index
        """
