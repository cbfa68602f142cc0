"""
Typed query builder for credential store lookups.

A ``Query`` is an immutable bundle of filters and sort keys. Filters are
tagged variants:

- ``Eq``: field equals value
- ``Match``: case-insensitive substring (or prefix) match on a text field
- ``Range``: field within optional lower/upper bounds

Queries are validated against the store's field list before any SQL is
built, so a typo in a field name fails loudly instead of matching nothing.

Usage:
    query = Query().eq("email", "a@b.com")
    recent = Query().range("created_at", gte=cutoff).order_by("created_at", descending=True)
"""

from dataclasses import dataclass, replace
from typing import Any, Collection, Optional, Tuple, Union

from placebook.errors import ValidationError


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any


@dataclass(frozen=True)
class Match:
    field: str
    text: str
    prefix: bool = False


@dataclass(frozen=True)
class Range:
    field: str
    gte: Any = None
    gt: Any = None
    lte: Any = None
    lt: Any = None

    def bounds(self) -> dict[str, Any]:
        return {
            op: value
            for op, value in (("gte", self.gte), ("gt", self.gt), ("lte", self.lte), ("lt", self.lt))
            if value is not None
        }


Filter = Union[Eq, Match, Range]


@dataclass(frozen=True)
class Sort:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Query:
    """Immutable query; every builder method returns a new instance."""

    filters: Tuple[Filter, ...] = ()
    sort: Tuple[Sort, ...] = ()
    limit_to: Optional[int] = None
    skip: int = 0

    def where(self, *filters: Filter) -> "Query":
        return replace(self, filters=self.filters + tuple(filters))

    def eq(self, field_name: str, value: Any) -> "Query":
        return self.where(Eq(field_name, value))

    def match(self, field_name: str, text: str, prefix: bool = False) -> "Query":
        return self.where(Match(field_name, text, prefix))

    def range(self, field_name: str, **bounds: Any) -> "Query":
        return self.where(Range(field_name, **bounds))

    def order_by(self, field_name: str, descending: bool = False) -> "Query":
        return replace(self, sort=self.sort + (Sort(field_name, descending),))

    def limit(self, count: int) -> "Query":
        return replace(self, limit_to=count)

    def offset(self, count: int) -> "Query":
        return replace(self, skip=count)

    def validate(self, fields: Collection[str]) -> None:
        """
        Check the query against the fields a store can filter and sort on.

        Raises:
            ValidationError: Unknown field, empty Match text, Range with no
                bounds, or a negative limit/offset.
        """
        for flt in self.filters:
            if flt.field not in fields:
                raise ValidationError(
                    f"Unknown query field: {flt.field}",
                    details={"field": flt.field},
                )
            if isinstance(flt, Match) and not flt.text:
                raise ValidationError(
                    f"Match on {flt.field} needs non-empty text",
                    details={"field": flt.field},
                )
            if isinstance(flt, Range) and not flt.bounds():
                raise ValidationError(
                    f"Range on {flt.field} needs at least one bound",
                    details={"field": flt.field},
                )
        for key in self.sort:
            if key.field not in fields:
                raise ValidationError(
                    f"Unknown sort field: {key.field}",
                    details={"field": key.field},
                )
        if self.limit_to is not None and self.limit_to < 0:
            raise ValidationError("Query limit cannot be negative")
        if self.skip < 0:
            raise ValidationError("Query offset cannot be negative")


def by_id(user_id: Any) -> Query:
    """Query for a single identity by primary key."""
    return Query().eq("id", user_id)
