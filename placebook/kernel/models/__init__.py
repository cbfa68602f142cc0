"""
Kernel data models (SQLAlchemy tables).
"""

from placebook.kernel.models.base import Base, TimestampMixin
from placebook.kernel.models.user import UserRow

__all__ = [
    "Base",
    "TimestampMixin",
    "UserRow",
]
