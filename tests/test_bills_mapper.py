"""
Tests for utils/bills.py — Bill/Finance records, payload validation and
persistence (load, finalize, insert_pending).
"""
from datetime import datetime

import pytest

from conftest import make_finalized, make_pending
from utils.bills import (
    BillPayloadError,
    FinalizedBill,
    Finance,
    PendingBill,
    bill_from_payload,
    finalize,
    insert_pending,
    load_bill,
    load_bills,
)
from utils.database import get_table_count

EXAMPLE_PAYLOAD = {
    "title": "Act A",
    "summary": "s",
    "committee": "Finance",
    "cbo_url": "http://x/1",
    "pdf_url": "http://x/1.pdf",
    "published": "2024-01-01",
    "code": "HR-1",
    "finances": [{"timespan": 10, "amount": 5000}],
}


# ── bill_from_payload ─────────────────────────────────────────────────────────

class TestBillFromPayload:
    def test_finances_key_means_finalized(self):
        bill = bill_from_payload(EXAMPLE_PAYLOAD)
        assert isinstance(bill, FinalizedBill)
        assert bill.id is None
        assert bill.published == datetime(2024, 1, 1)
        assert bill.finances == [Finance(timespan=10, amount=5000.0)]

    def test_empty_finances_still_finalized(self):
        bill = bill_from_payload({**EXAMPLE_PAYLOAD, "finances": []})
        assert isinstance(bill, FinalizedBill)
        assert bill.finances == []

    def test_no_finances_means_pending(self):
        payload = {k: v for k, v in EXAMPLE_PAYLOAD.items() if k != "finances"}
        bill = bill_from_payload(payload)
        assert isinstance(bill, PendingBill)
        assert bill.pending

    def test_explicit_kind_wins(self):
        bill = bill_from_payload({**EXAMPLE_PAYLOAD, "kind": "pending"})
        assert isinstance(bill, PendingBill)

    def test_explicit_finalized_requires_finances(self):
        payload = {k: v for k, v in EXAMPLE_PAYLOAD.items() if k != "finances"}
        with pytest.raises(BillPayloadError, match="finances"):
            bill_from_payload({**payload, "kind": "finalized"})

    def test_unknown_kind(self):
        with pytest.raises(BillPayloadError):
            bill_from_payload({**EXAMPLE_PAYLOAD, "kind": "draft"})

    @pytest.mark.parametrize("field", ["title", "summary", "committee", "code",
                                       "cbo_url", "pdf_url", "published"])
    def test_missing_field(self, field):
        payload = {k: v for k, v in EXAMPLE_PAYLOAD.items() if k != field}
        with pytest.raises(BillPayloadError, match=field):
            bill_from_payload(payload)

    def test_empty_string_rejected(self):
        with pytest.raises(BillPayloadError, match="title"):
            bill_from_payload({**EXAMPLE_PAYLOAD, "title": ""})

    def test_non_string_rejected(self):
        with pytest.raises(BillPayloadError):
            bill_from_payload({**EXAMPLE_PAYLOAD, "code": 12})

    def test_bad_date(self):
        with pytest.raises(BillPayloadError, match="published"):
            bill_from_payload({**EXAMPLE_PAYLOAD, "published": "yesterday"})

    def test_offset_date_normalised_to_utc(self):
        bill = bill_from_payload({**EXAMPLE_PAYLOAD, "published": "2024-01-01T02:00:00+02:00"})
        assert bill.published == datetime(2024, 1, 1, 0, 0, 0)

    def test_fractional_seconds_rejected(self):
        with pytest.raises(BillPayloadError, match="fractional seconds"):
            bill_from_payload({**EXAMPLE_PAYLOAD, "published": "2024-01-01T10:00:00.5"})

    def test_zero_fraction_accepted(self):
        bill = bill_from_payload({**EXAMPLE_PAYLOAD, "published": "2024-01-01T10:00:00.000"})
        assert bill.published == datetime(2024, 1, 1, 10, 0, 0)

    def test_bad_finance_entry(self):
        with pytest.raises(BillPayloadError, match="finances"):
            bill_from_payload({**EXAMPLE_PAYLOAD, "finances": [{"timespan": 10}]})

    def test_negative_timespan(self):
        with pytest.raises(BillPayloadError):
            bill_from_payload({**EXAMPLE_PAYLOAD,
                               "finances": [{"timespan": -1, "amount": 1}]})

    @pytest.mark.parametrize("payload", [None, [], "bill", 42])
    def test_not_an_object(self, payload):
        with pytest.raises(BillPayloadError):
            bill_from_payload(payload)

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            bill_from_payload({})

    def test_unknown_fields_ignored(self):
        bill = bill_from_payload({**EXAMPLE_PAYLOAD, "sponsor": "someone"})
        assert isinstance(bill, FinalizedBill)


# ── to_dict ───────────────────────────────────────────────────────────────────

class TestToDict:
    def test_unpersisted_finalized_has_no_id(self):
        bill = bill_from_payload(EXAMPLE_PAYLOAD)
        data = bill.to_dict()
        assert "id" not in data
        assert data["published"] == "2024-01-01 00:00:00"
        assert data["finances"] == [{"timespan": 10, "amount": 5000.0}]

    def test_persisted_finalized_has_id(self, empty_conn):
        bill = bill_from_payload(EXAMPLE_PAYLOAD)
        finalize(empty_conn, bill)
        assert bill.to_dict()["id"] == bill.id

    def test_pending_has_no_finances(self):
        payload = {k: v for k, v in EXAMPLE_PAYLOAD.items() if k != "finances"}
        data = bill_from_payload(payload).to_dict()
        assert "finances" not in data
        assert "id" not in data


# ── finalize ──────────────────────────────────────────────────────────────────

class TestFinalize:
    def test_example_round_trip(self, empty_conn):
        bill = bill_from_payload(EXAMPLE_PAYLOAD)
        bill_id = finalize(empty_conn, bill)
        assert bill.id == bill_id

        loaded = load_bill(empty_conn, bill_id)
        assert isinstance(loaded, FinalizedBill)
        assert loaded.to_dict() == bill.to_dict()
        assert [(f.timespan, f.amount) for f in loaded.finances] == [(10, 5000.0)]

    def test_year_before_1000_round_trip(self, empty_conn):
        bill = bill_from_payload({**EXAMPLE_PAYLOAD, "published": "0999-06-01"})
        bill_id = finalize(empty_conn, bill)
        stored = empty_conn.execute(
            "SELECT published FROM Bills WHERE id = ?", (bill_id,)
        ).fetchone()[0]
        assert stored == "0999-06-01 00:00:00"
        assert load_bill(empty_conn, bill_id).published == datetime(999, 6, 1)

    def test_idempotent(self, empty_conn):
        bill = bill_from_payload(EXAMPLE_PAYLOAD)
        first = finalize(empty_conn, bill)
        second = finalize(empty_conn, bill)
        assert first == second
        assert get_table_count(empty_conn, "Bills") == 1
        assert get_table_count(empty_conn, "Finances") == 1

    def test_removes_pending_counterpart(self, empty_conn):
        pending = make_pending("Act A", "Finance", datetime(2024, 1, 1), "HR-1", "http://x/1")
        pending_id = insert_pending(empty_conn, pending)
        assert pending_id is not None

        bill = FinalizedBill.from_pending(pending, [Finance(10, 5000.0)])
        finalize(empty_conn, bill)

        assert load_bill(empty_conn, pending_id, pending=True) is None
        assert get_table_count(empty_conn, "PendingBills") == 0

    def test_leaves_other_pending_rows(self, empty_conn):
        insert_pending(empty_conn, make_pending("Other", "Energy", datetime(2024, 1, 1),
                                                "HR-9", "http://x/9"))
        finalize(empty_conn, bill_from_payload(EXAMPLE_PAYLOAD))
        assert get_table_count(empty_conn, "PendingBills") == 1

    def test_rejects_pending_bill(self, empty_conn):
        pending = make_pending("Act A", "Finance", datetime(2024, 1, 1), "HR-1", "http://x/1")
        with pytest.raises(TypeError):
            finalize(empty_conn, pending)
        assert get_table_count(empty_conn, "Bills") == 0

    def test_finance_ids_assigned(self, empty_conn):
        bill = make_finalized("Act B", "Agriculture", datetime(2024, 2, 15), "HR-2",
                              "http://x/2", [(5, -200.0), (10, 300.0)])
        finalize(empty_conn, bill)
        assert all(f.id is not None for f in bill.finances)


# ── insert_pending ────────────────────────────────────────────────────────────

class TestInsertPending:
    def test_insert_and_load(self, empty_conn):
        bill = make_pending("Pending X", "Finance", datetime(2024, 6, 1), "HR-10", "http://p/10")
        pending_id = insert_pending(empty_conn, bill)
        assert bill.pending_id == pending_id
        assert bill.id is None

        loaded = load_bill(empty_conn, pending_id, pending=True)
        assert isinstance(loaded, PendingBill)
        assert loaded.to_dict() == bill.to_dict()

    def test_duplicate_pending(self, empty_conn):
        bill = make_pending("Pending X", "Finance", datetime(2024, 6, 1), "HR-10", "http://p/10")
        assert insert_pending(empty_conn, bill) is not None
        again = make_pending("Pending X", "Finance", datetime(2024, 6, 1), "HR-10", "http://p/10")
        assert insert_pending(empty_conn, again) is None
        assert get_table_count(empty_conn, "PendingBills") == 1

    def test_already_finalized(self, empty_conn):
        finalize(empty_conn, bill_from_payload(EXAMPLE_PAYLOAD))
        bill = make_pending("Act A", "Finance", datetime(2024, 1, 1), "HR-1", "http://x/1")
        assert insert_pending(empty_conn, bill) is None
        assert get_table_count(empty_conn, "PendingBills") == 0


# ── load_bill / load_bills ────────────────────────────────────────────────────

class TestLoad:
    def test_missing_returns_none(self, db, caplog):
        with caplog.at_level("WARNING", logger="bill_api.bills"):
            assert load_bill(db, 9999) is None
        assert "9999" in caplog.text

    def test_missing_pending(self, db):
        assert load_bill(db, 9999, pending=True) is None

    def test_pending_and_finalized_ids_are_separate(self, db):
        finalized = load_bill(db, 1)
        pending = load_bill(db, 1, pending=True)
        assert finalized.title == "Act A"
        assert pending.title == "Pending X"

    def test_bill_without_finances(self, db):
        row = db.execute("SELECT id FROM Bills WHERE title = 'Act C'").fetchone()
        bill = load_bill(db, row[0])
        assert bill.finances == []

    def test_load_bills_preserves_order_and_skips_missing(self, db):
        bills = load_bills(db, [3, 9999, 1, 2])
        assert [b.id for b in bills] == [3, 1, 2]
