# Overview: Pytest coverage for goods entries (receiving supplier invoices).

import pytest

from bizledger.errors import EmptyEntry, InsufficientStock, InvalidQuantity, ProductNotFound
from bizledger.models import FinancialTransaction, GoodsEntry, InventoryMovement
from bizledger.services import entry_service, inventory_service


class TestCreateEntry:

    def test_lines_credit_stock_and_overwrite_cost(self, db_session, org_a, admin_a, widget_a, gadget_a):
        entry = entry_service.create_entry(
            org_id=org_a.id,
            actor_user_id=admin_a.id,
            header={"supplier_name": "Acme Supply", "invoice_number": "NF-1001"},
            lines=[
                {"product_id": widget_a.id, "quantity": 5, "unit_cost_cents": 450},
                {"product_id": gadget_a.id, "quantity": 2, "unit_cost_cents": 1300},
            ],
        )

        assert entry.total_cents == 5 * 450 + 2 * 1300
        assert widget_a.quantity_on_hand == 15
        assert widget_a.cost_price_cents == 450
        assert gadget_a.quantity_on_hand == 5
        assert gadget_a.cost_price_cents == 1300

        movements = db_session.query(InventoryMovement).filter_by(source_type="goods_entry", source_id=entry.id).all()
        assert {m.reason for m in movements} == {"purchase"}
        assert {m.note for m in movements} == {f"Goods entry #{entry.id}"}
        assert inventory_service.verify_stock_conservation(org_a.id) == []

    def test_same_product_twice_keeps_last_cost(self, db_session, org_a, widget_a):
        entry = entry_service.create_entry(
            org_id=org_a.id,
            actor_user_id=None,
            header={},
            lines=[
                {"product_id": widget_a.id, "quantity": 1, "unit_cost_cents": 400},
                {"product_id": widget_a.id, "quantity": 1, "unit_cost_cents": 600},
            ],
        )
        assert entry.total_cents == 1000
        assert widget_a.quantity_on_hand == 12
        assert widget_a.cost_price_cents == 600

    def test_generate_expense_posts_pending_expense(self, db_session, org_a, widget_a):
        entry = entry_service.create_entry(
            org_id=org_a.id,
            actor_user_id=None,
            header={"supplier_name": "Acme Supply", "invoice_number": "NF-7", "generate_expense": True},
            lines=[{"product_id": widget_a.id, "quantity": 4, "unit_cost_cents": 250}],
        )

        txn = db_session.query(FinancialTransaction).one()
        assert txn.type == "expense"
        assert txn.status == "pending"
        assert txn.amount_cents == 1000
        assert txn.description == "Purchase invoice NF-7 - Acme Supply"
        assert entry.expense_transaction_id == txn.id

    def test_without_flag_no_expense(self, db_session, org_a, widget_a):
        entry_service.create_entry(
            org_id=org_a.id,
            actor_user_id=None,
            header={},
            lines=[{"product_id": widget_a.id, "quantity": 1, "unit_cost_cents": 100}],
        )
        assert db_session.query(FinancialTransaction).count() == 0

    def test_empty_entry_rejected(self, db_session, org_a):
        with pytest.raises(EmptyEntry):
            entry_service.create_entry(org_id=org_a.id, actor_user_id=None, header={}, lines=[])

    def test_bad_line_aborts_whole_entry(self, db_session, org_a, widget_a):
        with pytest.raises(ProductNotFound):
            entry_service.create_entry(
                org_id=org_a.id,
                actor_user_id=None,
                header={},
                lines=[
                    {"product_id": widget_a.id, "quantity": 5, "unit_cost_cents": 450},
                    {"product_id": 424242, "quantity": 1, "unit_cost_cents": 100},
                ],
            )
        assert widget_a.quantity_on_hand == 10
        assert widget_a.cost_price_cents == 500
        assert db_session.query(GoodsEntry).count() == 0

    def test_zero_quantity_rejected(self, db_session, org_a, widget_a):
        with pytest.raises(InvalidQuantity):
            entry_service.create_entry(
                org_id=org_a.id,
                actor_user_id=None,
                header={},
                lines=[{"product_id": widget_a.id, "quantity": 0, "unit_cost_cents": 100}],
            )


class TestDeleteEntry:

    def test_delete_reverses_stock_and_keeps_movements(self, db_session, org_a, widget_a):
        entry = entry_service.create_entry(
            org_id=org_a.id,
            actor_user_id=None,
            header={"generate_expense": True},
            lines=[{"product_id": widget_a.id, "quantity": 5, "unit_cost_cents": 450}],
        )
        entry_id = entry.id

        entry_service.delete_entry(org_id=org_a.id, entry_id=entry_id)

        assert widget_a.quantity_on_hand == 10
        assert db_session.query(GoodsEntry).count() == 0
        reversal = db_session.query(InventoryMovement).filter_by(
            source_type="goods_entry", source_id=entry_id, direction="out"
        ).one()
        assert reversal.reason == "adjustment"
        assert reversal.note == f"Reversal of goods entry #{entry_id}"
        # the posted expense is not touched
        assert db_session.query(FinancialTransaction).count() == 1
        assert inventory_service.verify_stock_conservation(org_a.id) == []

    def test_delete_after_goods_left_stock_is_refused(self, db_session, org_a, product_factory):
        fresh = product_factory(org_a, "Fresh item")
        entry = entry_service.create_entry(
            org_id=org_a.id,
            actor_user_id=None,
            header={},
            lines=[{"product_id": fresh.id, "quantity": 3, "unit_cost_cents": 100}],
        )
        inventory_service.manual_adjustment(org_id=org_a.id, product_id=fresh.id, direction="out", quantity=2)

        with pytest.raises(InsufficientStock):
            entry_service.delete_entry(org_id=org_a.id, entry_id=entry.id)
        assert fresh.quantity_on_hand == 1
        assert db_session.query(GoodsEntry).count() == 1
