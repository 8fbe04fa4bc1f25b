"""Tests for utils/query.py — bill list query planner."""
import pytest

from utils.common import sqldatetime
from utils.query import (
    MAX_OFFSET,
    ORDER_EXPRESSIONS,
    build_order_clause,
    build_where_clause,
    parse_order_param,
    plan_bill_ids,
    plan_pending_ids,
    validate_order,
)


class TestBuildWhereClause:
    def test_no_filters(self):
        where, params = build_where_clause()
        assert where == ""
        assert params == []

    def test_before(self):
        where, params = build_where_clause(before=0)
        assert where == "WHERE published <= ?"
        assert params == ["1970-01-01 00:00:00"]

    def test_after(self):
        where, params = build_where_clause(after=86400)
        assert where == "WHERE published >= ?"
        assert params == ["1970-01-02 00:00:00"]

    def test_committee(self):
        where, params = build_where_clause(committee="Finance")
        assert where == "WHERE committee = ?"
        assert params == ["Finance"]

    def test_combined_conditions_joined_with_and(self):
        where, params = build_where_clause(before=200, after=100, committee="Energy")
        assert where.startswith("WHERE ")
        assert where.count(" AND ") == 2
        assert params == [sqldatetime(200), sqldatetime(100), "Energy"]

    def test_committee_value_is_never_interpolated(self):
        where, params = build_where_clause(committee="x'; DROP TABLE Bills; --")
        assert "DROP" not in where
        assert params == ["x'; DROP TABLE Bills; --"]


class TestBuildOrderClause:
    @pytest.mark.parametrize("key,expr", list(ORDER_EXPRESSIONS.items()))
    def test_each_key(self, key, expr):
        clause = build_order_clause(key, "asc")
        assert clause == f"ORDER BY {expr} ASC, id ASC"

    def test_desc_keeps_ascending_tiebreak(self):
        assert build_order_clause("date", "desc") == "ORDER BY published DESC, id ASC"

    def test_net_sums_finances(self):
        clause = build_order_clause("net", "desc")
        assert "SUM(amount)" in clause
        assert "COALESCE" in clause

    def test_invalid_key(self):
        with pytest.raises(ValueError, match="order key"):
            build_order_clause("title", "asc")

    def test_invalid_direction(self):
        with pytest.raises(ValueError, match="direction"):
            build_order_clause("date", "up")

    def test_direction_is_case_sensitive(self):
        with pytest.raises(ValueError):
            validate_order("date", "DESC")


class TestParseOrderParam:
    def test_valid(self):
        assert parse_order_param("committee desc") == ("committee", "desc")

    @pytest.mark.parametrize("order", ["", "date", "date desc extra", "date  desc", "desc date"])
    def test_malformed(self, order):
        with pytest.raises(ValueError):
            parse_order_param(order)


class TestPlanBillIds:
    def test_no_filters_has_no_where(self):
        sql, params = plan_bill_ids("date", "desc", {}, 11)
        assert sql == (
            "SELECT id FROM Bills ORDER BY published DESC, id ASC LIMIT ? OFFSET ?"
        )
        assert params == [11, 0]

    def test_none_filters(self):
        sql, params = plan_bill_ids("date", "asc", None, 3)
        assert "WHERE" not in sql
        assert params == [3, 0]

    def test_filters_and_start(self):
        sql, params = plan_bill_ids(
            "committee", "asc",
            {"before": 100, "committee": "Finance", "start": 20},
            11,
        )
        assert sql.startswith("SELECT id FROM Bills WHERE published <= ? AND committee = ?")
        assert params == [sqldatetime(100), "Finance", 11, 20]

    def test_unknown_filter_keys_ignored(self):
        sql, params = plan_bill_ids("date", "asc", {"title": "Act A"}, 5)
        assert "title" not in sql
        assert params == [5, 0]

    def test_negative_start(self):
        with pytest.raises(ValueError):
            plan_bill_ids("date", "asc", {"start": -1}, 5)

    def test_start_beyond_sqlite_integer(self):
        with pytest.raises(ValueError):
            plan_bill_ids("date", "asc", {"start": MAX_OFFSET + 1}, 5)

    def test_before_out_of_range(self):
        with pytest.raises(ValueError):
            plan_bill_ids("date", "desc", {"before": 10**20}, 5)

    def test_invalid_order_rejected(self):
        with pytest.raises(ValueError):
            plan_bill_ids("id; --", "asc", {}, 5)

    def test_plan_executes(self, db):
        sql, params = plan_bill_ids("net", "desc", {"committee": "Agriculture"}, 10)
        ids = [r[0] for r in db.execute(sql, params).fetchall()]
        titles = [db.execute("SELECT title FROM Bills WHERE id = ?", (i,)).fetchone()[0]
                  for i in ids]
        assert titles == ["Act F", "Act B"]


class TestPlanPendingIds:
    def test_oldest_first(self):
        sql, params = plan_pending_ids(0, 11)
        assert "FROM PendingBills" in sql
        assert "ORDER BY published ASC, id ASC" in sql
        assert "WHERE" not in sql
        assert params == [11, 0]

    def test_negative_start(self):
        with pytest.raises(ValueError):
            plan_pending_ids(-5, 11)

    def test_start_beyond_sqlite_integer(self):
        with pytest.raises(ValueError):
            plan_pending_ids(2**70, 11)
