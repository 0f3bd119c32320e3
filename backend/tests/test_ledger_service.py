"""
Ledger store tests.

Verifies:
- Receipts create a batch and a RECEIPT movement with per-product sequences
- Live batches come back in consumption order (expiry, nulls last, then sequence)
- Batch deduction refuses to go below zero
- Movement history is lazy and oldest-first
"""

from datetime import date
from types import GeneratorType

import pytest

from stockledger.errors import InsufficientBatchQuantity, InvalidQuantity, ValidationError
from stockledger.models import StockBatch, StockMovement
from stockledger.models.inventory import MOVEMENT_RECEIPT, MOVEMENT_SALE, MOVEMENT_CORRECTION
from stockledger.services.concurrency import ledger_transaction
from stockledger.services.ledger_service import (
    append_receipt,
    deduct_from_batch,
    get_batches,
    iter_movements,
)


class TestAppendReceipt:

    def test_creates_batch_and_receipt_movement(self, db_session, make_product):
        make_product("111")
        with ledger_transaction():
            batch = append_receipt("111", 5, 80, expiry_date=date(2027, 1, 1), note="delivery")

        assert batch.quantity_received == 5
        assert batch.quantity_remaining == 5
        assert batch.unit_cost_cents == 80
        assert batch.expiry_date == date(2027, 1, 1)
        assert batch.sequence == 1

        movements = db_session.query(StockMovement).filter_by(product_barcode="111").all()
        assert len(movements) == 1
        assert movements[0].kind == MOVEMENT_RECEIPT
        assert movements[0].quantity_delta == 5
        assert movements[0].batch_id == batch.id
        assert movements[0].note == "delivery"

    def test_sequence_is_per_product(self, db_session, make_product):
        make_product("111")
        make_product("222")
        with ledger_transaction():
            a1 = append_receipt("111", 1, 10)
            b1 = append_receipt("222", 1, 10)
            a2 = append_receipt("111", 1, 10)

        assert (a1.sequence, a2.sequence) == (1, 2)
        assert b1.sequence == 1

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, "abc", None, True])
    def test_rejects_non_positive_quantity(self, db_session, make_product, quantity):
        make_product("111")
        with pytest.raises(InvalidQuantity):
            with ledger_transaction():
                append_receipt("111", quantity, 10)

        assert db_session.query(StockBatch).count() == 0

    def test_rejects_negative_cost(self, db_session, make_product):
        make_product("111")
        with pytest.raises(ValidationError):
            with ledger_transaction():
                append_receipt("111", 1, -1)


class TestGetBatches:

    def test_orders_by_expiry_then_sequence_nulls_last(self, db_session, make_product):
        make_product("111")
        with ledger_transaction():
            no_expiry_old = append_receipt("111", 1, 10)
            late = append_receipt("111", 1, 10, expiry_date=date(2027, 6, 1))
            early = append_receipt("111", 1, 10, expiry_date=date(2027, 1, 1))
            no_expiry_new = append_receipt("111", 1, 10)
            late_twin = append_receipt("111", 1, 10, expiry_date=date(2027, 6, 1))

        ordered = [b.id for b in get_batches("111")]
        assert ordered == [early.id, late.id, late_twin.id, no_expiry_old.id, no_expiry_new.id]

    def test_skips_empty_batches(self, db_session, make_product):
        make_product("111")
        with ledger_transaction():
            first = append_receipt("111", 2, 10)
            second = append_receipt("111", 3, 10)
            deduct_from_batch(first.id, 2)

        batches = get_batches("111")
        assert [b.id for b in batches] == [second.id]
        # emptied batch is kept for history
        assert db_session.get(StockBatch, first.id).quantity_remaining == 0

    def test_unknown_product_has_no_batches(self, db_session):
        assert get_batches("does-not-exist") == []


class TestDeductFromBatch:

    def test_decrements_and_logs_movement(self, db_session, make_product):
        make_product("111")
        with ledger_transaction():
            batch = append_receipt("111", 5, 10)
            deduct_from_batch(batch.id, 3, kind=MOVEMENT_CORRECTION, note="broken")

        db_session.expire_all()
        assert db_session.get(StockBatch, batch.id).quantity_remaining == 2
        last = db_session.query(StockMovement).order_by(StockMovement.id.desc()).first()
        assert last.kind == MOVEMENT_CORRECTION
        assert last.quantity_delta == -3
        assert last.note == "broken"

    def test_refuses_more_than_remaining(self, db_session, make_product):
        make_product("111")
        with ledger_transaction():
            batch = append_receipt("111", 2, 10)

        with pytest.raises(InsufficientBatchQuantity) as excinfo:
            with ledger_transaction():
                deduct_from_batch(batch.id, 3)

        assert excinfo.value.remaining == 2
        assert excinfo.value.requested == 3
        db_session.expire_all()
        assert db_session.get(StockBatch, batch.id).quantity_remaining == 2
        assert db_session.query(StockMovement).filter_by(kind=MOVEMENT_SALE).count() == 0

    def test_rejects_receipt_kind(self, db_session, make_product):
        make_product("111")
        with ledger_transaction():
            batch = append_receipt("111", 2, 10)
        with pytest.raises(ValidationError):
            with ledger_transaction():
                deduct_from_batch(batch.id, 1, kind=MOVEMENT_RECEIPT)


class TestIterMovements:

    def test_lazy_and_oldest_first(self, db_session, make_product):
        make_product("111")
        make_product("222")
        with ledger_transaction():
            batch = append_receipt("111", 5, 10)
            append_receipt("222", 5, 10)
            deduct_from_batch(batch.id, 1)
            deduct_from_batch(batch.id, 2)

        movements = iter_movements("111", chunk_size=1)
        assert isinstance(movements, GeneratorType)

        rows = list(movements)
        assert [m.quantity_delta for m in rows] == [5, -1, -2]
        assert [m.id for m in rows] == sorted(m.id for m in rows)
        assert all(m.product_barcode == "111" for m in rows)

    def test_empty_for_unknown_product(self, db_session):
        assert list(iter_movements("nope")) == []

    @pytest.mark.parametrize("chunk_size", [0, -1])
    def test_bad_chunk_size_fails_on_call(self, db_session, chunk_size):
        with pytest.raises(ValueError):
            iter_movements("111", chunk_size=chunk_size)
