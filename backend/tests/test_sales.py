# Overview: Pytest coverage for checkout, draft sales, installments and commissions.

"""
Sales workflow tests.

Verifies:
- checkout debits stock, posts one completed income and the seller commission
- any failing line rolls back the whole checkout
- drafts post N pending installments with the remainder on the first
- commission payables move pending -> paid exactly once
"""

from datetime import datetime

import pytest

from bizledger.errors import (
    ConflictError,
    EmptyCart,
    InsufficientStock,
    ProductNotFound,
    ValidationError,
)
from bizledger.models import AuditEvent, Commission, FinancialTransaction, InventoryMovement, Sale
from bizledger.services import commission_service, inventory_service, sales_service


def _checkout(org, seller, lines, **extra):
    payload = {"lines": lines}
    payload.update(extra)
    return sales_service.checkout(org_id=org.id, seller_user_id=seller.id, payload=payload)


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCheckout:

    def test_sell_four_of_ten(self, db_session, org_a, seller_a, widget_a):
        sale = _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 4}])

        assert sale.status == "completed"
        assert sale.total_cents == 4000
        assert widget_a.quantity_on_hand == 6

        movements = db_session.query(InventoryMovement).filter_by(source_type="sale", source_id=sale.id).all()
        assert len(movements) == 1
        assert movements[0].direction == "out"
        assert movements[0].quantity == 4
        assert movements[0].reason == "sale"
        assert movements[0].note == f"Sale #{sale.id}"

        incomes = db_session.query(FinancialTransaction).filter_by(type="income", sale_id=sale.id).all()
        assert len(incomes) == 1
        assert incomes[0].amount_cents == sale.total_cents
        assert incomes[0].status == "completed"

    def test_insufficient_stock_changes_nothing(self, db_session, org_a, seller_a, product_factory):
        scarce = product_factory(org_a, "Scarce", qty=2, sale=1000)

        with pytest.raises(InsufficientStock) as exc_info:
            _checkout(org_a, seller_a, [{"product_id": scarce.id, "quantity": 4}])

        assert exc_info.value.deficit == 2
        assert scarce.quantity_on_hand == 2
        assert db_session.query(InventoryMovement).filter_by(source_type="sale").count() == 0
        assert db_session.query(FinancialTransaction).count() == 0
        assert db_session.query(Sale).count() == 0

    def test_one_bad_line_rolls_back_every_line(self, db_session, org_a, seller_a, widget_a, gadget_a):
        with pytest.raises(InsufficientStock):
            _checkout(org_a, seller_a, [
                {"product_id": widget_a.id, "quantity": 2},
                {"product_id": gadget_a.id, "quantity": 5},
            ])

        assert widget_a.quantity_on_hand == 10
        assert gadget_a.quantity_on_hand == 3
        assert db_session.query(Commission).count() == 0
        assert db_session.query(AuditEvent).count() == 0

    def test_unknown_product_is_not_found(self, db_session, org_a, seller_a):
        with pytest.raises(ProductNotFound):
            _checkout(org_a, seller_a, [{"product_id": 9999, "quantity": 1}])

    def test_empty_cart(self, db_session, org_a, seller_a):
        with pytest.raises(EmptyCart):
            _checkout(org_a, seller_a, [])

    def test_explicit_price_and_discount(self, db_session, org_a, seller_a, widget_a):
        sale = _checkout(
            org_a, seller_a,
            [{"product_id": widget_a.id, "quantity": 2, "unit_price_cents": 900}],
            discount_cents=300,
        )
        assert sale.total_cents == 1500
        assert sale.lines[0].unit_price_cents == 900

    def test_discount_larger_than_lines_rejected(self, db_session, org_a, seller_a, widget_a):
        with pytest.raises(ValidationError):
            _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 1}], discount_cents=5000)
        assert widget_a.quantity_on_hand == 10

    def test_service_line_moves_no_stock(self, db_session, org_a, seller_a, labor_a):
        sale = _checkout(org_a, seller_a, [{"product_id": labor_a.id, "quantity": 2}])
        assert sale.total_cents == 16000
        assert db_session.query(InventoryMovement).filter_by(product_id=labor_a.id).count() == 0

    def test_zero_total_posts_no_income(self, db_session, org_a, seller_a, widget_a):
        sale = _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 1, "unit_price_cents": 0}])
        assert sale.total_cents == 0
        assert widget_a.quantity_on_hand == 9
        assert db_session.query(FinancialTransaction).count() == 0

    def test_stock_ledger_stays_consistent(self, db_session, org_a, seller_a, widget_a, gadget_a):
        _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 3}])
        _checkout(org_a, seller_a, [{"product_id": gadget_a.id, "quantity": 3}, {"product_id": widget_a.id, "quantity": 1}])
        assert inventory_service.verify_stock_conservation(org_a.id) == []


# =============================================================================
# COMMISSIONS
# =============================================================================


class TestCommissions:

    def test_product_rate_then_seller_default(self, db_session, org_a, seller_a, widget_a, product_factory):
        premium = product_factory(org_a, "Premium", qty=5, sale=2000, commission_bps=500)

        sale = _checkout(org_a, seller_a, [
            {"product_id": premium.id, "quantity": 1},   # 20.00 at 5% -> 1.00
            {"product_id": widget_a.id, "quantity": 5},  # 50.00 at seller 3% -> 1.50
        ])

        by_product = {line.product_id: line for line in sale.lines}
        assert by_product[premium.id].commission_rate_bps == 500
        assert by_product[premium.id].commission_cents == 100
        assert by_product[widget_a.id].commission_rate_bps == 300
        assert by_product[widget_a.id].commission_cents == 150
        assert sale.commission_cents == 250

        commission = db_session.query(Commission).filter_by(sale_id=sale.id).one()
        assert commission.amount_cents == 250
        assert commission.status == "pending"
        assert commission.seller_user_id == seller_a.id

    def test_explicit_zero_product_rate_blocks_seller_default(self, db_session, org_a, seller_a, product_factory):
        no_commission = product_factory(org_a, "Loss leader", qty=5, sale=1000, commission_bps=0)

        sale = _checkout(org_a, seller_a, [{"product_id": no_commission.id, "quantity": 2}])

        assert sale.commission_cents == 0
        assert db_session.query(Commission).count() == 0

    def test_pay_commission_once(self, db_session, org_a, admin_a, seller_a, widget_a):
        sale = _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 1}])
        commission = db_session.query(Commission).filter_by(sale_id=sale.id).one()

        paid = commission_service.pay_commission(org_id=org_a.id, commission_id=commission.id, actor_user_id=admin_a.id)
        assert paid.status == "paid"
        assert paid.paid_at is not None

        with pytest.raises(ConflictError):
            commission_service.pay_commission(org_id=org_a.id, commission_id=commission.id)

    def test_list_filters_by_status(self, db_session, org_a, seller_a, widget_a):
        _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 1}])
        assert len(commission_service.list_commissions(org_a.id, status="pending")) == 1
        assert commission_service.list_commissions(org_a.id, status="paid") == []
        with pytest.raises(ValidationError):
            commission_service.list_commissions(org_a.id, status="void")


# =============================================================================
# DRAFTS AND INSTALLMENTS
# =============================================================================


class TestDraftSales:

    def _draft_with(self, org, seller, product, quantity):
        sale = sales_service.create_draft_sale(org_id=org.id, seller_user_id=seller.id)
        return sales_service.add_sale_item(
            org_id=org.id, sale_id=sale.id, payload={"product_id": product.id, "quantity": quantity},
        )

    def test_draft_moves_nothing_until_finished(self, db_session, org_a, seller_a, widget_a):
        sale = self._draft_with(org_a, seller_a, widget_a, 3)

        assert sale.status == "draft"
        assert sale.total_cents == 3000
        assert widget_a.quantity_on_hand == 10
        assert db_session.query(FinancialTransaction).count() == 0

    def test_remove_item_recomputes_total(self, db_session, org_a, seller_a, widget_a, gadget_a):
        sale = self._draft_with(org_a, seller_a, widget_a, 1)
        sale = sales_service.add_sale_item(
            org_id=org_a.id, sale_id=sale.id, payload={"product_id": gadget_a.id, "quantity": 1},
        )
        assert sale.total_cents == 3500

        widget_line = next(ln for ln in sale.lines if ln.product_id == widget_a.id)
        sale = sales_service.remove_sale_item(org_id=org_a.id, sale_id=sale.id, line_id=widget_line.id)
        assert sale.total_cents == 2500
        assert len(sale.lines) == 1

    def test_finish_posts_installments(self, db_session, org_a, seller_a, widget_a):
        sale = self._draft_with(org_a, seller_a, widget_a, 1)
        sale = sales_service.finish_sale(
            org_id=org_a.id,
            sale_id=sale.id,
            actor_user_id=seller_a.id,
            payload={"installments": 3, "first_due_date": "2024-01-31"},
        )

        assert sale.status == "completed"
        assert sale.installments == 3
        assert widget_a.quantity_on_hand == 9

        rows = (
            db_session.query(FinancialTransaction)
            .filter_by(sale_id=sale.id)
            .order_by(FinancialTransaction.installment_number)
            .all()
        )
        assert [r.amount_cents for r in rows] == [334, 333, 333]
        assert {r.status for r in rows} == {"pending"}
        assert [r.installment_number for r in rows] == [1, 2, 3]
        assert [r.due_date for r in rows] == [
            datetime(2024, 1, 31),
            datetime(2024, 2, 29),
            datetime(2024, 3, 31),
        ]
        assert rows[0].description == f"Sale #{sale.id} (1/3)"

    def test_finish_twice_is_refused(self, db_session, org_a, seller_a, widget_a):
        sale = self._draft_with(org_a, seller_a, widget_a, 1)
        sales_service.finish_sale(org_id=org_a.id, sale_id=sale.id, actor_user_id=seller_a.id)

        with pytest.raises(ConflictError):
            sales_service.finish_sale(org_id=org_a.id, sale_id=sale.id, actor_user_id=seller_a.id)
        assert widget_a.quantity_on_hand == 9
        assert db_session.query(FinancialTransaction).filter_by(sale_id=sale.id).count() == 1

    def test_completed_sale_cannot_be_edited(self, db_session, org_a, seller_a, widget_a):
        sale = _checkout(org_a, seller_a, [{"product_id": widget_a.id, "quantity": 1}])
        with pytest.raises(ConflictError):
            sales_service.add_sale_item(
                org_id=org_a.id, sale_id=sale.id, payload={"product_id": widget_a.id, "quantity": 1},
            )

    def test_finish_empty_draft_rejected(self, db_session, org_a, seller_a):
        sale = sales_service.create_draft_sale(org_id=org_a.id, seller_user_id=seller_a.id)
        with pytest.raises(EmptyCart):
            sales_service.finish_sale(org_id=org_a.id, sale_id=sale.id, actor_user_id=seller_a.id)

    @pytest.mark.parametrize("count", [0, 49, "abc"])
    def test_installment_bounds(self, db_session, org_a, seller_a, widget_a, count):
        sale = self._draft_with(org_a, seller_a, widget_a, 1)
        with pytest.raises(ValidationError):
            sales_service.finish_sale(
                org_id=org_a.id, sale_id=sale.id, actor_user_id=seller_a.id, payload={"installments": count},
            )
        assert widget_a.quantity_on_hand == 10
