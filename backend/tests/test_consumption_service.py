"""
Batch consumer tests.

Verifies:
- Earliest expiry is consumed first; undated batches go last, oldest first
- A shortfall fails before any batch is touched
- Corrections use the same order and are tagged CORRECTION
"""

from datetime import date

import pytest

from stockledger.errors import InsufficientStock, InvalidQuantity
from stockledger.models import StockBatch, StockMovement
from stockledger.models.inventory import MOVEMENT_CORRECTION, MOVEMENT_SALE
from stockledger.services import inventory_service
from stockledger.services.concurrency import ledger_transaction
from stockledger.services.consumption_service import consume, correct, plan_consumption
from stockledger.services.stock_service import get_on_hand

from .conftest import batch_remaining, live_batch_sum


@pytest.fixture
def dated_product(db_session, make_product):
    """Product with three dated batches received out of expiry order."""
    make_product("111")
    e3 = inventory_service.receive_stock("111", 5, 40, expiry_date=date(2027, 3, 1))
    e1 = inventory_service.receive_stock("111", 2, 40, expiry_date=date(2027, 1, 1))
    e2 = inventory_service.receive_stock("111", 3, 40, expiry_date=date(2027, 2, 1))
    return {"e1": e1.id, "e2": e2.id, "e3": e3.id}


def _remaining_by_id(db_session) -> dict[int, int]:
    db_session.expire_all()
    return {b.id: b.quantity_remaining for b in db_session.query(StockBatch).all()}


class TestPlanConsumption:

    def test_takes_from_each_in_order(self):
        batches = [StockBatch(id=1, quantity_remaining=2), StockBatch(id=2, quantity_remaining=3)]
        plan = plan_consumption(batches, 4)
        assert [(b.id, qty) for b, qty in plan] == [(1, 2), (2, 2)]

    def test_stops_when_satisfied(self):
        batches = [StockBatch(id=1, quantity_remaining=10), StockBatch(id=2, quantity_remaining=3)]
        plan = plan_consumption(batches, 4)
        assert [(b.id, qty) for b, qty in plan] == [(1, 4)]


class TestConsume:

    def test_earliest_expiry_first(self, dated_product, db_session):
        with ledger_transaction():
            taken = consume("111", 4)

        assert taken == [(dated_product["e1"], 2), (dated_product["e2"], 2)]
        remaining = _remaining_by_id(db_session)
        assert remaining[dated_product["e1"]] == 0
        assert remaining[dated_product["e2"]] == 1
        assert remaining[dated_product["e3"]] == 5
        assert get_on_hand("111") == 6

    def test_undated_batches_fifo(self, db_session, stocked_product):
        stocked_product("111", 3, 4)
        with ledger_transaction():
            consume("111", 5)
        assert batch_remaining("111") == [0, 2]

    def test_dated_before_undated(self, db_session, make_product):
        make_product("111")
        undated = inventory_service.receive_stock("111", 3, 10)
        dated = inventory_service.receive_stock("111", 3, 10, expiry_date=date(2027, 1, 1))

        with ledger_transaction():
            taken = consume("111", 4)

        assert taken == [(dated.id, 3), (undated.id, 1)]

    def test_exact_drain(self, dated_product, db_session):
        with ledger_transaction():
            consume("111", 10)
        assert get_on_hand("111") == 0
        assert live_batch_sum("111") == 0
        # emptied batches remain on file
        assert db_session.query(StockBatch).filter_by(product_barcode="111").count() == 3

    def test_shortfall_touches_nothing(self, dated_product, db_session):
        before = _remaining_by_id(db_session)
        movements_before = db_session.query(StockMovement).count()

        with pytest.raises(InsufficientStock) as excinfo:
            with ledger_transaction():
                consume("111", 11)

        assert excinfo.value.requested == 11
        assert excinfo.value.available == 10
        assert _remaining_by_id(db_session) == before
        assert db_session.query(StockMovement).count() == movements_before

    def test_unknown_product_has_nothing_to_consume(self, db_session):
        with pytest.raises(InsufficientStock) as excinfo:
            with ledger_transaction():
                consume("ghost", 1)
        assert excinfo.value.available == 0

    @pytest.mark.parametrize("quantity", [0, -1, "2.5"])
    def test_rejects_bad_quantity(self, dated_product, quantity):
        with pytest.raises(InvalidQuantity):
            with ledger_transaction():
                consume("111", quantity)
        assert get_on_hand("111") == 10

    def test_movements_tagged_sale(self, dated_product, db_session):
        with ledger_transaction():
            consume("111", 3, note="walk-in")

        sales = db_session.query(StockMovement).filter_by(kind=MOVEMENT_SALE).all()
        assert sorted(m.quantity_delta for m in sales) == [-2, -1]
        assert all(m.note == "walk-in" for m in sales)

    def test_receive_then_consume_restores_on_hand(self, db_session, stocked_product):
        stocked_product("111", 4, 6)
        before = get_on_hand("111")

        inventory_service.receive_stock("111", 5, 30)
        with ledger_transaction():
            consume("111", 5)

        assert get_on_hand("111") == before
        assert get_on_hand("111") == live_batch_sum("111")


class TestCorrect:

    def test_tags_correction(self, dated_product, db_session):
        with ledger_transaction():
            taken = correct("111", -3)

        assert taken == [(dated_product["e1"], 2), (dated_product["e2"], 1)]
        corrections = db_session.query(StockMovement).filter_by(kind=MOVEMENT_CORRECTION).all()
        assert sum(m.quantity_delta for m in corrections) == -3
        assert db_session.query(StockMovement).filter_by(kind=MOVEMENT_SALE).count() == 0

    @pytest.mark.parametrize("amount", [0, 3, "x"])
    def test_requires_negative_amount(self, dated_product, amount):
        with pytest.raises(InvalidQuantity):
            with ledger_transaction():
                correct("111", amount)

    def test_shortfall(self, dated_product):
        with pytest.raises(InsufficientStock):
            with ledger_transaction():
                correct("111", -11)
        assert get_on_hand("111") == 10

    def test_receive_then_correct_round_trip(self, db_session, make_product):
        make_product("111")
        inventory_service.receive_stock("111", 7, 25)
        with ledger_transaction():
            correct("111", -7)
        assert get_on_hand("111") == 0
