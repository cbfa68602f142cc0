"""
Credential storage: records, query builder and store implementations.
"""

from placebook.kernel.store.base import CredentialStore, DuplicateKeyError
from placebook.kernel.store.query import Eq, Filter, Match, Query, Range, Sort, by_id
from placebook.kernel.store.records import (
    Location,
    Preferences,
    PrivacySettings,
    SocialLinks,
    UserRecord,
    UserSettings,
    UserStats,
)
from placebook.kernel.store.sql import SqlCredentialStore

__all__ = [
    "CredentialStore",
    "DuplicateKeyError",
    "SqlCredentialStore",
    "Query",
    "Filter",
    "Eq",
    "Match",
    "Range",
    "Sort",
    "by_id",
    "UserRecord",
    "Location",
    "Preferences",
    "PrivacySettings",
    "SocialLinks",
    "UserSettings",
    "UserStats",
]
