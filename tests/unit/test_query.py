"""Unit tests for the typed query builder and its SQL compilation."""

from datetime import datetime, timezone

import pytest

from placebook.errors import ValidationError
from placebook.kernel.store import Eq, Match, Query, Range, SqlCredentialStore, by_id

FIELDS = {"id", "email", "username", "created_at"}


class TestQueryBuilder:

    def test_builder_is_immutable(self):
        base = Query()
        narrowed = base.eq("email", "a@b.com")

        assert base.filters == ()
        assert narrowed.filters == (Eq("email", "a@b.com"),)

    def test_filters_accumulate_in_order(self):
        query = Query().eq("email", "a@b.com").match("username", "ab", prefix=True).range("created_at", gte=1)

        assert [type(f) for f in query.filters] == [Eq, Match, Range]
        assert query.filters[1].prefix is True

    def test_limit_offset_and_sort(self):
        query = Query().order_by("created_at", descending=True).limit(5).offset(10)

        assert query.sort[0].descending is True
        assert query.limit_to == 5
        assert query.skip == 10

    def test_range_bounds_only_reports_set_values(self):
        assert Range("created_at", gte=1, lt=5).bounds() == {"gte": 1, "lt": 5}

    def test_by_id(self):
        assert by_id("abc").filters == (Eq("id", "abc"),)

    def test_valid_query_passes(self):
        Query().eq("email", "a@b.com").order_by("created_at").validate(FIELDS)

    @pytest.mark.parametrize(
        "query",
        [
            Query().eq("password_hash", "x"),
            Query().order_by("password_hash"),
            Query().match("username", ""),
            Query().range("created_at"),
            Query().limit(-1),
            Query().offset(-3),
        ],
    )
    def test_invalid_queries_rejected(self, query: Query):
        with pytest.raises(ValidationError):
            query.validate(FIELDS)


class TestSqlCompilation:

    def _sql(self, query: Query) -> str:
        return str(SqlCredentialStore(session=None).compile(query))

    def test_eq_compiles_to_equality(self):
        assert "users.email = :email_1" in self._sql(Query().eq("email", "a@b.com"))

    def test_match_compiles_to_like(self):
        sql = self._sql(Query().match("username", "ab"))
        assert "LIKE" in sql.upper()

    def test_range_compiles_to_comparisons(self):
        cutoff = datetime(2026, 1, 1, tzinfo=timezone.utc)
        sql = self._sql(Query().range("created_at", gte=cutoff, lt=cutoff))

        assert "users.created_at >= " in sql
        assert "users.created_at < " in sql

    def test_sort_and_limit(self):
        sql = self._sql(Query().order_by("created_at", descending=True).limit(3))

        assert "ORDER BY users.created_at DESC" in sql
        assert "LIMIT" in sql

    def test_unknown_field_never_reaches_sql(self):
        with pytest.raises(ValidationError):
            self._sql(Query().eq("bio", "hello"))
