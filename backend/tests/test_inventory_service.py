"""
Inventory operation tests: receive, correct, and the read-side views.
"""

from datetime import date

import pytest

from stockledger.errors import InsufficientStock, InvalidQuantity, UnknownProduct, ValidationError
from stockledger.models import StockBatch, StockMovement
from stockledger.models.inventory import MOVEMENT_CORRECTION, MOVEMENT_RECEIPT
from stockledger.services import inventory_service
from stockledger.validation import MAX_QUANTITY

from .conftest import batch_remaining, live_batch_sum


class TestReceiveStock:

    def test_creates_batch(self, db_session, make_product):
        make_product("111")
        batch = inventory_service.receive_stock("111", 12, 95, expiry_date=date(2027, 5, 1), note="PO-7")

        assert batch.quantity_remaining == 12
        assert batch.expiry_date == date(2027, 5, 1)
        assert inventory_service.get_on_hand("111") == 12

        movement = db_session.query(StockMovement).filter_by(batch_id=batch.id).one()
        assert movement.kind == MOVEMENT_RECEIPT
        assert movement.note == "PO-7"

    def test_unknown_product(self, db_session):
        with pytest.raises(UnknownProduct):
            inventory_service.receive_stock("ghost", 1, 10)
        assert db_session.query(StockBatch).count() == 0

    @pytest.mark.parametrize("quantity", [0, -5, "1e3"])
    def test_invalid_quantity(self, db_session, make_product, quantity):
        make_product("111")
        with pytest.raises(InvalidQuantity):
            inventory_service.receive_stock("111", quantity, 10)
        assert inventory_service.get_on_hand("111") == 0

    def test_quantity_over_bound(self, db_session, make_product):
        make_product("111")
        with pytest.raises(InvalidQuantity):
            inventory_service.receive_stock("111", 10 ** 20, 5)
        assert db_session.query(StockBatch).count() == 0

    def test_invalid_cost(self, db_session, make_product):
        make_product("111")
        with pytest.raises(ValidationError):
            inventory_service.receive_stock("111", 1, "cheap")


class TestCorrectStock:

    def test_positive_adds_batch_at_selling_price(self, db_session, make_product):
        make_product("111", price_cents=175)

        assert inventory_service.correct_stock("111", 4) == 4

        batch = db_session.query(StockBatch).filter_by(product_barcode="111").one()
        assert batch.unit_cost_cents == 175
        assert batch.quantity_received == 4

    def test_negative_consumes_with_correction_movements(self, db_session, stocked_product):
        stocked_product("111", 3, 5)

        assert inventory_service.correct_stock("111", -4, note="damaged") == 4
        assert batch_remaining("111") == [0, 4]

        corrections = db_session.query(StockMovement).filter_by(kind=MOVEMENT_CORRECTION).all()
        assert sum(m.quantity_delta for m in corrections) == -4
        assert all(m.note == "damaged" for m in corrections)

    def test_zero_is_noop(self, db_session, stocked_product):
        stocked_product("111", 3)
        movements_before = db_session.query(StockMovement).count()

        assert inventory_service.correct_stock("111", 0) == 3
        assert db_session.query(StockMovement).count() == movements_before

    def test_zero_still_requires_product(self, db_session):
        with pytest.raises(UnknownProduct):
            inventory_service.correct_stock("ghost", 0)

    def test_string_delta(self, db_session, stocked_product):
        stocked_product("111", 3)
        assert inventory_service.correct_stock("111", "-2") == 1

    @pytest.mark.parametrize("delta", [1.5, "abc", None, True])
    def test_non_integer_delta(self, db_session, stocked_product, delta):
        stocked_product("111", 3)
        with pytest.raises(InvalidQuantity):
            inventory_service.correct_stock("111", delta)

    @pytest.mark.parametrize("delta", [10 ** 20, -(10 ** 20), MAX_QUANTITY + 1])
    def test_delta_over_bound(self, db_session, stocked_product, delta):
        stocked_product("111", 3)
        with pytest.raises(InvalidQuantity):
            inventory_service.correct_stock("111", delta)
        assert live_batch_sum("111") == 3

    def test_negative_beyond_on_hand(self, db_session, stocked_product):
        stocked_product("111", 2)
        with pytest.raises(InsufficientStock):
            inventory_service.correct_stock("111", -3)
        assert live_batch_sum("111") == 2


class TestReads:

    def test_summary(self, db_session, make_product):
        make_product("111")
        inventory_service.receive_stock("111", 2, 100, expiry_date=date(2027, 2, 1))
        inventory_service.receive_stock("111", 1, 51, expiry_date=date(2027, 1, 1))
        inventory_service.receive_stock("111", 3, 10)

        summary = inventory_service.get_inventory_summary("111")

        assert summary["quantity_on_hand"] == 6
        assert summary["live_batches"] == 3
        assert summary["inventory_value_cents"] == 281
        # 281 / 6 = 46.83 -> 47
        assert summary["weighted_average_cost_cents"] == 47
        assert summary["next_expiry_date"] == "2027-01-01"

    def test_summary_without_stock(self, db_session, make_product):
        make_product("111")
        summary = inventory_service.get_inventory_summary("111")
        assert summary["quantity_on_hand"] == 0
        assert summary["weighted_average_cost_cents"] is None
        assert summary["next_expiry_date"] is None

    def test_summary_unknown_product(self, db_session):
        with pytest.raises(UnknownProduct):
            inventory_service.get_inventory_summary("ghost")

    def test_list_batches_consumption_order(self, db_session, make_product):
        make_product("111")
        undated = inventory_service.receive_stock("111", 1, 10)
        dated = inventory_service.receive_stock("111", 1, 10, expiry_date=date(2027, 1, 1))

        assert [b.id for b in inventory_service.list_batches("111")] == [dated.id, undated.id]

    def test_list_movements(self, db_session, stocked_product):
        stocked_product("111", 5)
        inventory_service.correct_stock("111", -2)

        kinds = [m.kind for m in inventory_service.list_movements("111")]
        assert kinds == [MOVEMENT_RECEIPT, MOVEMENT_CORRECTION]
