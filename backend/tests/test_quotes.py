# Overview: Pytest coverage for quotes and their single-use conversion.

import pytest

from bizledger.errors import InsufficientStock, QuoteAlreadyConverted, ValidationError
from bizledger.models import Commission, FinancialTransaction, InventoryMovement, Sale, ServiceOrder
from bizledger.services import quote_service, service_order_service


def _two_line_quote(org, actor, widget, labor, **extra):
    payload = {
        "client_name": "Carla",
        "items": [
            {"product_id": widget.id, "quantity": 2},
            {"product_id": labor.id, "quantity": 1},
        ],
    }
    payload.update(extra)
    return quote_service.create_quote(org_id=org.id, actor_user_id=actor.id, payload=payload)


class TestQuotes:

    def test_quote_prices_lines_without_moving_anything(self, db_session, org_a, seller_a, widget_a, labor_a):
        quote = _two_line_quote(org_a, seller_a, widget_a, labor_a, discount_cents=500)

        assert quote.status == "draft"
        assert quote.total_cents == 2 * 1000 + 8000 - 500
        assert widget_a.quantity_on_hand == 10
        assert db_session.query(FinancialTransaction).count() == 0

    def test_discount_cannot_exceed_lines(self, db_session, org_a, seller_a, widget_a, labor_a):
        with pytest.raises(ValidationError):
            _two_line_quote(org_a, seller_a, widget_a, labor_a, discount_cents=999_999)

    def test_delete_only_drafts(self, db_session, org_a, seller_a, widget_a, labor_a):
        quote = _two_line_quote(org_a, seller_a, widget_a, labor_a)
        quote_service.convert_quote(org_id=org_a.id, quote_id=quote.id, target="service_order", actor_user_id=seller_a.id)
        with pytest.raises(QuoteAlreadyConverted):
            quote_service.delete_quote(org_id=org_a.id, quote_id=quote.id)


class TestConvertToServiceOrder:

    def test_order_total_matches_and_no_stock_moves(self, db_session, org_a, seller_a, widget_a, labor_a):
        quote = _two_line_quote(org_a, seller_a, widget_a, labor_a, discount_cents=500)

        quote, order = quote_service.convert_quote(
            org_id=org_a.id, quote_id=quote.id, target="serviceOrder", actor_user_id=seller_a.id,
        )

        assert isinstance(order, ServiceOrder)
        assert order.status == "open"
        assert order.total_cents == quote.total_cents
        assert order.equipment == "To be defined"
        assert order.source_quote_id == quote.id
        assert quote.status == "converted"
        assert quote.converted_target == "service_order"
        assert quote.converted_target_id == order.id
        assert db_session.query(InventoryMovement).filter_by(source_type="service_order").count() == 0

        service_order_service.update_status(org_id=org_a.id, order_id=order.id, new_status="completed")
        assert widget_a.quantity_on_hand == 8


class TestConvertToSale:

    def test_sale_completes_with_pending_income(self, db_session, org_a, seller_a, widget_a, labor_a):
        quote = _two_line_quote(org_a, seller_a, widget_a, labor_a)

        quote, sale = quote_service.convert_quote(
            org_id=org_a.id, quote_id=quote.id, target="sale", actor_user_id=seller_a.id,
        )

        assert isinstance(sale, Sale)
        assert sale.status == "completed"
        assert sale.total_cents == quote.total_cents
        assert sale.source_quote_id == quote.id
        assert widget_a.quantity_on_hand == 8

        txn = db_session.query(FinancialTransaction).filter_by(sale_id=sale.id).one()
        assert txn.status == "pending"
        assert txn.amount_cents == 10000
        # seller default 3% on every line
        assert db_session.query(Commission).filter_by(sale_id=sale.id).one().amount_cents == 300

    def test_conversion_is_single_use(self, db_session, org_a, seller_a, widget_a, labor_a):
        quote = _two_line_quote(org_a, seller_a, widget_a, labor_a)
        quote_service.convert_quote(org_id=org_a.id, quote_id=quote.id, target="sale", actor_user_id=seller_a.id)

        with pytest.raises(QuoteAlreadyConverted):
            quote_service.convert_quote(org_id=org_a.id, quote_id=quote.id, target="sale", actor_user_id=seller_a.id)
        assert db_session.query(Sale).count() == 1
        assert widget_a.quantity_on_hand == 8

    def test_failed_conversion_keeps_quote_draft(self, db_session, org_a, seller_a, gadget_a, labor_a):
        quote = quote_service.create_quote(
            org_id=org_a.id,
            actor_user_id=seller_a.id,
            payload={"items": [{"product_id": gadget_a.id, "quantity": 5}]},
        )

        with pytest.raises(InsufficientStock):
            quote_service.convert_quote(org_id=org_a.id, quote_id=quote.id, target="sale", actor_user_id=seller_a.id)

        assert quote_service.get_quote(org_a.id, quote.id).status == "draft"
        assert db_session.query(Sale).count() == 0
        assert gadget_a.quantity_on_hand == 3

    def test_unknown_target(self, db_session, org_a, seller_a, widget_a, labor_a):
        quote = _two_line_quote(org_a, seller_a, widget_a, labor_a)
        with pytest.raises(ValidationError):
            quote_service.convert_quote(org_id=org_a.id, quote_id=quote.id, target="invoice", actor_user_id=seller_a.id)
