# Overview: Pure cost and commission derivations used by sales and production.

"""
Costing rules

Money is integer cents and rates are integer basis points (500 = 5.00%), so
"round to 2 decimal places, half-up" is exact integer arithmetic:

    commission = (subtotal_cents * rate_bps + 5000) // 10000
    unit_cost  = (total_cents + quantity // 2) // quantity

Commission rate precedence: product rate when not null (an explicit 0 wins),
else the seller's default rate, else 0.
"""

from __future__ import annotations

BPS_DENOMINATOR = 10_000


def resolve_commission_rate(product, seller) -> int:
    if product is not None and product.commission_rate_bps is not None:
        return product.commission_rate_bps
    if seller is not None and seller.default_commission_rate_bps is not None:
        return seller.default_commission_rate_bps
    return 0


def compute_line_commission(subtotal_cents: int, rate_bps: int) -> int:
    if subtotal_cents <= 0 or rate_bps <= 0:
        return 0
    return (subtotal_cents * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def compute_production_unit_cost(raw_material_cents: int, operation_cost_cents: int, quantity: int) -> int:
    """Unit cost of a production batch; 0 when quantity <= 0."""
    if quantity <= 0:
        return 0
    total = raw_material_cents + operation_cost_cents
    return (total + quantity // 2) // quantity
